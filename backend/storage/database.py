from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator, TypeVar

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from auth.utils import UserIdentity
from db.models import (
    DayPlanRow,
    DaySummaryRow,
    GoalRow,
    JournalActiveEntryRow,
    JournalEntryRow,
    PresetRow,
    TransactionRow,
    UserProgressRow,
)
from services.progress_service import set_active_preset
from storage.base import StorageAdapter
from storage.errors import StorageError, StorageNotConfiguredError
from storage.models import (
    DayPlan,
    DayPlanItem,
    DaySummary,
    Goal,
    JournalEntry,
    Preset,
    PresetItem,
    Record,
    Transaction,
    UserProgress,
    sort_transactions,
)
from utils.datetime_utils import now_ms

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

_USER_TABLES = (
    PresetRow,
    DayPlanRow,
    DaySummaryRow,
    UserProgressRow,
    JournalEntryRow,
    JournalActiveEntryRow,
    GoalRow,
    TransactionRow,
)


def _load_json_list(raw: str | None, model: type[R], label: str) -> list[R]:
    if not raw:
        return []
    try:
        payload = json.loads(raw)
    except ValueError as e:
        logger.warning(f"Malformed JSON in {label}: {e}")
        return []
    if not isinstance(payload, list):
        logger.warning(f"Expected a JSON array in {label}")
        return []
    rows: list[R] = []
    for entry in payload:
        try:
            rows.append(model.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping malformed entry in {label}: {e.error_count()} validation error(s)")
    return rows


def _dump_json_list(items: list[Record]) -> str:
    return json.dumps([item.to_json() for item in items], ensure_ascii=False)


def _preset_from_row(row: PresetRow) -> Preset:
    label = f"preset {row.preset_id}"
    return Preset(
        id=row.preset_id,
        name=row.name,
        habits=_load_json_list(row.habits, PresetItem, f"{label} habits"),
        tasks=_load_json_list(row.tasks, PresetItem, f"{label} tasks"),
        updated_at=int(row.updated_at or 0),
    )


def _day_plan_from_row(row: DayPlanRow) -> DayPlan:
    label = f"day plan {row.date}"
    return DayPlan(
        date=row.date,
        active_preset_id=row.active_preset_id,
        preset_updated_at=int(row.preset_updated_at) if row.preset_updated_at is not None else None,
        items=_load_json_list(row.items, DayPlanItem, f"{label} items"),
        archived=_load_json_list(row.archived, DayPlanItem, f"{label} archived"),
        is_sealed=bool(row.is_sealed),
    )


_SUMMARY_FIELDS = (
    "operator_pct",
    "operator_total",
    "operator_done",
    "is_sealed",
    "sealed_at",
    "total_score_pct",
    "habits_pct",
    "tasks_pct_capped",
    "habits_total",
    "habits_done",
    "tasks_total",
    "tasks_done",
    "status",
    "xp_earned",
)

_PROGRESS_FIELDS = (
    "xp",
    "rank_key",
    "xp_to_next",
    "best_streak",
    "current_streak",
    "last_sealed_date",
    "active_preset_id",
    "updated_at",
)


def _summary_from_row(row: DaySummaryRow) -> DaySummary:
    return DaySummary(date=row.date, **{name: getattr(row, name) for name in _SUMMARY_FIELDS})


def _progress_from_row(row: UserProgressRow) -> UserProgress:
    return UserProgress(**{name: getattr(row, name) for name in _PROGRESS_FIELDS})


def _journal_from_row(row: JournalEntryRow) -> JournalEntry:
    return JournalEntry(
        id=row.entry_id,
        date=row.date,
        content=row.content or "",
        created_at=int(row.created_at or 0),
        updated_at=int(row.updated_at or 0),
    )


def _goal_from_row(row: GoalRow) -> Goal:
    return Goal(
        id=row.goal_id,
        text=row.text,
        tag=row.tag,
        done=bool(row.done),
        done_at=int(row.done_at) if row.done_at is not None else None,
        created_at=int(row.created_at or 0),
        updated_at=int(row.updated_at or 0),
    )


def _transaction_from_row(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.transaction_id,
        kind=row.kind,
        amount=float(row.amount),
        currency=row.currency or "GBP",
        category=row.category or "",
        note=row.note,
        date=row.date,
        created_at=int(row.created_at or 0),
        updated_at=int(row.updated_at or 0),
    )


def _upsert(db: Session, model: type, pk: tuple | str, **values: Any):
    row = db.get(model, pk)
    if row is None:
        row = model(**values)
        db.add(row)
    else:
        for name, value in values.items():
            setattr(row, name, value)
    return row


class DatabaseStorageAdapter(StorageAdapter):
    """Per-user backend over the SQL database.

    Reads degrade to empty defaults when the database is not configured or no
    user is signed in, so callers stay usable read-only. Writes fail fast in
    both cases.
    """

    backend_name = "database"

    def __init__(self, session_factory: sessionmaker | None, identity: UserIdentity) -> None:
        self._session_factory = session_factory
        self._identity = identity

    @property
    def identity(self) -> UserIdentity:
        return self._identity

    def _reader_user_id(self, what: str) -> str | None:
        if self._session_factory is None:
            logger.warning(f"Database storage not configured; reading {what} as empty")
            return None
        user_id = self._identity.user_id()
        if not user_id:
            logger.warning(f"No signed-in user; reading {what} as empty")
        return user_id

    def _writer_user_id(self) -> str:
        if self._session_factory is None:
            raise StorageNotConfiguredError("Database storage is not configured. Set DATABASE_URL.")
        return self._identity.require_user_id()

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise StorageError(f"Failed to {action}") from e
        finally:
            db.close()

    # Presets
    async def get_presets(self) -> dict[str, Preset]:
        user_id = self._reader_user_id("presets")
        if not user_id:
            return {}
        with self._session("fetch presets") as db:
            rows = db.query(PresetRow).filter(PresetRow.user_id == user_id).all()
            return {row.preset_id: _preset_from_row(row) for row in rows}

    async def save_presets(self, presets: dict[str, Preset]) -> None:
        user_id = self._writer_user_id()
        with self._session("save presets") as db:
            keep_ids = set(presets)
            existing = db.query(PresetRow).filter(PresetRow.user_id == user_id).all()
            for row in existing:
                if row.preset_id not in keep_ids:
                    db.delete(row)
            for preset_id, preset in presets.items():
                _upsert(
                    db,
                    PresetRow,
                    (user_id, preset_id),
                    user_id=user_id,
                    preset_id=preset_id,
                    name=preset.name,
                    habits=_dump_json_list(preset.habits),
                    tasks=_dump_json_list(preset.tasks),
                    updated_at=preset.updated_at,
                )

    async def get_active_preset_id(self) -> str | None:
        progress = await self.get_user_progress()
        return progress.active_preset_id if progress else None

    async def set_active_preset_id(self, preset_id: str | None) -> None:
        await self.update_user_progress(set_active_preset(preset_id))

    # Day plans
    async def get_day_plan(self, date: str) -> DayPlan:
        user_id = self._reader_user_id(f"day plan {date}")
        if not user_id:
            return DayPlan.empty(date)
        with self._session("fetch day plan") as db:
            row = db.get(DayPlanRow, (user_id, date))
            return _day_plan_from_row(row) if row else DayPlan.empty(date)

    async def save_day_plan(self, plan: DayPlan) -> None:
        user_id = self._writer_user_id()
        with self._session("save day plan") as db:
            _upsert(
                db,
                DayPlanRow,
                (user_id, plan.date),
                user_id=user_id,
                date=plan.date,
                active_preset_id=plan.active_preset_id,
                preset_updated_at=plan.preset_updated_at,
                items=_dump_json_list(plan.items),
                archived=_dump_json_list(plan.archived),
                is_sealed=plan.is_sealed,
                updated_at=now_ms(),
            )

    async def list_day_plan_dates(self) -> list[str]:
        user_id = self._reader_user_id("day plan dates")
        if not user_id:
            return []
        with self._session("list day plans") as db:
            rows = (
                db.query(DayPlanRow.date)
                .filter(DayPlanRow.user_id == user_id)
                .order_by(DayPlanRow.date.desc())
                .all()
            )
            return [row.date for row in rows]

    # Day summaries
    async def get_day_summary(self, date: str) -> DaySummary | None:
        user_id = self._reader_user_id(f"day summary {date}")
        if not user_id:
            return None
        with self._session("fetch day summary") as db:
            row = db.get(DaySummaryRow, (user_id, date))
            return _summary_from_row(row) if row else None

    async def save_day_summary(self, summary: DaySummary) -> None:
        user_id = self._writer_user_id()
        with self._session("save day summary") as db:
            _upsert(
                db,
                DaySummaryRow,
                (user_id, summary.date),
                user_id=user_id,
                date=summary.date,
                **{name: getattr(summary, name) for name in _SUMMARY_FIELDS},
            )

    async def get_all_sealed_day_summaries(self) -> list[DaySummary]:
        user_id = self._reader_user_id("sealed day summaries")
        if not user_id:
            return []
        with self._session("fetch sealed summaries") as db:
            rows = (
                db.query(DaySummaryRow)
                .filter(DaySummaryRow.user_id == user_id, DaySummaryRow.is_sealed.is_(True))
                .order_by(DaySummaryRow.date.desc())
                .all()
            )
            return [_summary_from_row(row) for row in rows]

    # User progress
    async def get_user_progress(self) -> UserProgress | None:
        user_id = self._reader_user_id("user progress")
        if not user_id:
            return None
        with self._session("fetch user progress") as db:
            row = db.get(UserProgressRow, user_id)
            return _progress_from_row(row) if row else None

    async def save_user_progress(self, progress: UserProgress) -> None:
        user_id = self._writer_user_id()
        with self._session("save user progress") as db:
            _upsert(
                db,
                UserProgressRow,
                user_id,
                user_id=user_id,
                **{name: getattr(progress, name) for name in _PROGRESS_FIELDS},
            )

    async def _before_progress_update(self) -> None:
        self._writer_user_id()

    # Journal
    async def get_journal_entries(self) -> list[JournalEntry]:
        user_id = self._reader_user_id("journal entries")
        if not user_id:
            return []
        with self._session("fetch journal entries") as db:
            rows = (
                db.query(JournalEntryRow)
                .filter(JournalEntryRow.user_id == user_id)
                .order_by(JournalEntryRow.updated_at.desc())
                .all()
            )
            return [_journal_from_row(row) for row in rows]

    async def save_journal_entries(self, entries: list[JournalEntry]) -> None:
        user_id = self._writer_user_id()
        with self._session("save journal entries") as db:
            keep_ids = {entry.id for entry in entries}
            for row in db.query(JournalEntryRow).filter(JournalEntryRow.user_id == user_id).all():
                if row.entry_id not in keep_ids:
                    db.delete(row)
            for entry in entries:
                _upsert(
                    db,
                    JournalEntryRow,
                    (user_id, entry.id),
                    user_id=user_id,
                    entry_id=entry.id,
                    date=entry.date,
                    content=entry.content,
                    created_at=entry.created_at,
                    updated_at=entry.updated_at,
                )

    async def get_active_entry_id(self) -> str | None:
        user_id = self._reader_user_id("active journal entry")
        if not user_id:
            return None
        with self._session("fetch active entry") as db:
            row = db.get(JournalActiveEntryRow, user_id)
            return row.active_entry_id if row else None

    async def set_active_entry_id(self, entry_id: str | None) -> None:
        user_id = self._writer_user_id()
        with self._session("save active entry") as db:
            _upsert(
                db,
                JournalActiveEntryRow,
                user_id,
                user_id=user_id,
                active_entry_id=entry_id,
                updated_at=now_ms(),
            )

    # Goals
    async def get_goals(self) -> list[Goal]:
        user_id = self._reader_user_id("goals")
        if not user_id:
            return []
        with self._session("fetch goals") as db:
            rows = (
                db.query(GoalRow)
                .filter(GoalRow.user_id == user_id)
                .order_by(GoalRow.updated_at.desc())
                .all()
            )
            return [_goal_from_row(row) for row in rows]

    async def save_goals(self, goals: list[Goal]) -> None:
        user_id = self._writer_user_id()
        with self._session("save goals") as db:
            keep_ids = {goal.id for goal in goals}
            for row in db.query(GoalRow).filter(GoalRow.user_id == user_id).all():
                if row.goal_id not in keep_ids:
                    db.delete(row)
            for goal in goals:
                _upsert(
                    db,
                    GoalRow,
                    (user_id, goal.id),
                    user_id=user_id,
                    goal_id=goal.id,
                    text=goal.text,
                    tag=goal.tag,
                    done=goal.done,
                    done_at=goal.done_at,
                    created_at=goal.created_at,
                    updated_at=goal.updated_at,
                )

    # Transactions
    async def get_transactions(self) -> list[Transaction]:
        user_id = self._reader_user_id("transactions")
        if not user_id:
            return []
        with self._session("fetch transactions") as db:
            rows = db.query(TransactionRow).filter(TransactionRow.user_id == user_id).all()
            return sort_transactions([_transaction_from_row(row) for row in rows])

    async def save_transactions(self, items: list[Transaction]) -> None:
        user_id = self._writer_user_id()
        with self._session("save transactions") as db:
            keep_ids = {item.id for item in items}
            for row in db.query(TransactionRow).filter(TransactionRow.user_id == user_id).all():
                if row.transaction_id not in keep_ids:
                    db.delete(row)
            for item in items:
                _upsert(
                    db,
                    TransactionRow,
                    (user_id, item.id),
                    user_id=user_id,
                    transaction_id=item.id,
                    kind=item.kind,
                    amount=item.amount,
                    currency=item.currency,
                    category=item.category,
                    note=item.note,
                    date=item.date,
                    created_at=item.created_at,
                    updated_at=item.updated_at,
                )

    async def reset(self) -> None:
        user_id = self._writer_user_id()
        with self._session("reset user data") as db:
            for model in _USER_TABLES:
                db.query(model).filter(model.user_id == user_id).delete(synchronize_session=False)
        logger.info(f"Database storage reset for user {user_id}")
