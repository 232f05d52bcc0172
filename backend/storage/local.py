from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import ValidationError

from storage.base import StorageAdapter
from storage.errors import StorageSerializationError
from storage.models import (
    DayPlan,
    DaySummary,
    Goal,
    JournalEntry,
    Preset,
    Record,
    Transaction,
    UserProgress,
    sort_transactions,
)
from utils.kv_store import JsonKeyValueStore

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


class LocalStorageAdapter(StorageAdapter):
    """Single-user backend over a namespaced JSON key-value store.

    Stored values that fail to parse or validate are logged and read as absent.
    Writes fail loudly: a value that cannot be encoded raises
    StorageSerializationError and a failed disk write raises StorageError.
    """

    backend_name = "local"

    def __init__(self, store: JsonKeyValueStore, prefix: str = "p01:") -> None:
        self._store = store
        self._prefix = prefix

    def _key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    def _read_record(self, key: str, model: type[R]) -> R | None:
        raw = self._store.get_json(key, None)
        if raw is None:
            return None
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed record at '{key}': {e.error_count()} validation error(s)")
            return None

    def _read_list(self, key: str, model: type[R]) -> list[R]:
        raw = self._store.get_json(key, [])
        if not isinstance(raw, list):
            logger.warning(f"Expected a list at '{key}', got {type(raw).__name__}")
            return []
        rows: list[R] = []
        for entry in raw:
            try:
                rows.append(model.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed entry in '{key}': {e.error_count()} validation error(s)")
        return rows

    def _write(self, key: str, value: Any) -> None:
        if not self._store.set_json(key, value):
            raise StorageSerializationError(f"Could not serialize value for '{key}'")

    # Presets
    async def get_presets(self) -> dict[str, Preset]:
        key = self._key("presets")
        raw = self._store.get_json(key, {})
        if not isinstance(raw, dict):
            logger.warning(f"Expected an object at '{key}', got {type(raw).__name__}")
            return {}
        presets: dict[str, Preset] = {}
        for preset_id, payload in raw.items():
            try:
                presets[str(preset_id)] = Preset.model_validate(payload)
            except ValidationError as e:
                logger.warning(f"Skipping malformed preset '{preset_id}': {e.error_count()} validation error(s)")
        return presets

    async def save_presets(self, presets: dict[str, Preset]) -> None:
        self._write(self._key("presets"), {pid: p.to_json() for pid, p in presets.items()})

    async def get_active_preset_id(self) -> str | None:
        value = self._store.get_json(self._key("activePresetId"), None)
        return value if isinstance(value, str) and value else None

    async def set_active_preset_id(self, preset_id: str | None) -> None:
        self._write(self._key("activePresetId"), preset_id)

    # Day plans
    async def get_day_plan(self, date: str) -> DayPlan:
        plan = self._read_record(self._key(f"dayplan:{date}"), DayPlan)
        if plan is None or plan.date != date:
            return DayPlan.empty(date)
        return plan

    async def save_day_plan(self, plan: DayPlan) -> None:
        self._write(self._key(f"dayplan:{plan.date}"), plan.to_json())

    async def list_day_plan_dates(self) -> list[str]:
        prefix = self._key("dayplan:")
        dates = [key[len(prefix):] for key in self._store.keys(prefix)]
        return sorted(dates, reverse=True)

    # Day summaries
    async def get_day_summary(self, date: str) -> DaySummary | None:
        return self._read_record(self._key(f"daySummary:{date}"), DaySummary)

    async def save_day_summary(self, summary: DaySummary) -> None:
        self._write(self._key(f"daySummary:{summary.date}"), summary.to_json())

    async def get_all_sealed_day_summaries(self) -> list[DaySummary]:
        summaries: list[DaySummary] = []
        for key in self._store.keys(self._key("daySummary:")):
            summary = self._read_record(key, DaySummary)
            if summary and summary.is_sealed:
                summaries.append(summary)
        summaries.sort(key=lambda s: s.date, reverse=True)
        return summaries

    # User progress
    async def get_user_progress(self) -> UserProgress | None:
        return self._read_record(self._key("userProgress"), UserProgress)

    async def save_user_progress(self, progress: UserProgress) -> None:
        self._write(self._key("userProgress"), progress.to_json())

    # Journal
    async def get_journal_entries(self) -> list[JournalEntry]:
        return self._read_list(self._key("journalEntries"), JournalEntry)

    async def save_journal_entries(self, entries: list[JournalEntry]) -> None:
        self._write(self._key("journalEntries"), [e.to_json() for e in entries])

    async def get_active_entry_id(self) -> str | None:
        value = self._store.get_json(self._key("journalActiveEntryId"), None)
        return value if isinstance(value, str) and value else None

    async def set_active_entry_id(self, entry_id: str | None) -> None:
        self._write(self._key("journalActiveEntryId"), entry_id)

    # Goals
    async def get_goals(self) -> list[Goal]:
        return self._read_list(self._key("goals"), Goal)

    async def save_goals(self, goals: list[Goal]) -> None:
        self._write(self._key("goals"), [g.to_json() for g in goals])

    # Transactions
    async def get_transactions(self) -> list[Transaction]:
        return sort_transactions(self._read_list(self._key("transactions"), Transaction))

    async def save_transactions(self, items: list[Transaction]) -> None:
        self._write(self._key("transactions"), [t.to_json() for t in sort_transactions(items)])

    async def reset(self) -> None:
        for key in self._store.keys(self._prefix):
            self._store.remove_item(key)
        logger.info(f"Local store reset ({self._prefix}* keys removed)")
