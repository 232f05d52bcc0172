from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from services.progress_service import ProgressUpdater, default_user_progress, patch_progress
from storage.models import (
    DayPlan,
    DaySummary,
    Goal,
    JournalEntry,
    Preset,
    Transaction,
    UserProgress,
)


class StorageAdapter(ABC):
    """Asynchronous key-value contract shared by the local and database backends.

    Reads never raise for absent data: they return an empty default. Saves are
    upserts keyed by the record's natural key (date, id, or the per-user
    singleton). Nothing here is atomic across concurrent writers; the last full
    record written wins.
    """

    backend_name: str = "abstract"

    # Presets
    @abstractmethod
    async def get_presets(self) -> dict[str, Preset]:
        ...

    @abstractmethod
    async def save_presets(self, presets: dict[str, Preset]) -> None:
        """Replace the preset map; presets missing from `presets` are removed."""
        ...

    @abstractmethod
    async def get_active_preset_id(self) -> str | None:
        ...

    @abstractmethod
    async def set_active_preset_id(self, preset_id: str | None) -> None:
        ...

    # Day plans
    @abstractmethod
    async def get_day_plan(self, date: str) -> DayPlan:
        ...

    @abstractmethod
    async def save_day_plan(self, plan: DayPlan) -> None:
        ...

    @abstractmethod
    async def list_day_plan_dates(self) -> list[str]:
        """Dates with a stored plan, newest first."""
        ...

    # Day summaries
    @abstractmethod
    async def get_day_summary(self, date: str) -> DaySummary | None:
        ...

    @abstractmethod
    async def save_day_summary(self, summary: DaySummary) -> None:
        ...

    @abstractmethod
    async def get_all_sealed_day_summaries(self) -> list[DaySummary]:
        """Sealed summaries, newest first."""
        ...

    # User progress
    @abstractmethod
    async def get_user_progress(self) -> UserProgress | None:
        ...

    @abstractmethod
    async def save_user_progress(self, progress: UserProgress) -> None:
        ...

    async def _before_progress_update(self) -> None:
        """Hook run before the read half of a read-modify-write."""

    async def update_user_progress(self, updater: ProgressUpdater) -> UserProgress:
        await self._before_progress_update()
        current = await self.get_user_progress()
        if current is None:
            current = default_user_progress()
        updated = updater(current)
        await self.save_user_progress(updated)
        return updated

    async def set_user_progress(self, patch: dict[str, Any]) -> UserProgress:
        return await self.update_user_progress(patch_progress(patch))

    # Journal
    @abstractmethod
    async def get_journal_entries(self) -> list[JournalEntry]:
        ...

    @abstractmethod
    async def save_journal_entries(self, entries: list[JournalEntry]) -> None:
        ...

    @abstractmethod
    async def get_active_entry_id(self) -> str | None:
        ...

    @abstractmethod
    async def set_active_entry_id(self, entry_id: str | None) -> None:
        ...

    # Goals
    @abstractmethod
    async def get_goals(self) -> list[Goal]:
        ...

    @abstractmethod
    async def save_goals(self, goals: list[Goal]) -> None:
        ...

    # Transactions
    @abstractmethod
    async def get_transactions(self) -> list[Transaction]:
        ...

    @abstractmethod
    async def save_transactions(self, items: list[Transaction]) -> None:
        ...

    @abstractmethod
    async def reset(self) -> None:
        """Delete every record owned by the current user."""
        ...
