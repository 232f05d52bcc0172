from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.day_plan_service import DayPlanSealedError, set_item_completed  # noqa: E402
from services.progress_service import award_sealed_day, default_user_progress  # noqa: E402
from services.rank_service import compute_rank_from_xp, xp_to_next_rank  # noqa: E402
from services.summary_service import compute_day_summary, get_streak, seal_day  # noqa: E402
from storage.errors import StorageError  # noqa: E402
from storage.local import LocalStorageAdapter  # noqa: E402
from storage.models import DayPlan, DayPlanItem, DaySummary  # noqa: E402
from utils.kv_store import JsonKeyValueStore  # noqa: E402


def _item(item_id, kind, completed):
    return DayPlanItem(id=item_id, kind=kind, text=item_id, completed=completed, source="manual")


def _plan(date, habits=(), tasks=()):
    items = [_item(f"h{i}", "habit", done) for i, done in enumerate(habits)]
    items += [_item(f"t{i}", "task", done) for i, done in enumerate(tasks)]
    return DayPlan(date=date, items=items)


def test_operator_score_counts_habits_only():
    summary = compute_day_summary(_plan("2025-06-01", habits=[True, True, False], tasks=[True]), task_cap=5)
    assert summary.operator_total == 3
    assert summary.operator_done == 2
    assert summary.operator_pct == 67
    assert summary.habits_pct == 67
    assert summary.tasks_pct_capped == 100
    assert summary.total_score_pct == 75
    assert summary.status == "partial"
    assert summary.is_sealed is False


def test_task_contribution_is_capped():
    summary = compute_day_summary(
        _plan("2025-06-01", habits=[True, True], tasks=[True, True] + [False] * 6),
        task_cap=2,
    )
    assert summary.tasks_total == 8
    assert summary.tasks_done == 2
    assert summary.tasks_pct_capped == 100
    assert summary.total_score_pct == 100
    assert summary.status == "perfect"
    assert summary.xp_earned == 20


def test_status_tiers():
    assert compute_day_summary(_plan("d", habits=[True], tasks=[False]), task_cap=5).status == "complete"
    assert compute_day_summary(_plan("d", habits=[False], tasks=[False]), task_cap=5).status == "failed"
    assert compute_day_summary(_plan("d"), task_cap=5).operator_pct == 0


def test_rank_table_and_xp_to_next():
    assert compute_rank_from_xp(-5).rank_key == "recruit"
    assert compute_rank_from_xp(float("nan")).rank_key == "recruit"
    assert compute_rank_from_xp(100).rank_key == "operator"
    state = compute_rank_from_xp(375)
    assert state.rank_key == "advanced"
    assert state.progress_pct == 50.0
    assert compute_rank_from_xp(5000).rank_key == "sorcerer_supreme"
    assert compute_rank_from_xp(5000).next_threshold is None
    assert xp_to_next_rank(990) == 10
    assert xp_to_next_rank(2500) == 0


def test_award_sealed_day_keeps_best_streak_and_latest_date():
    prev = default_user_progress(now=1).model_copy(update={"best_streak": 7, "last_sealed_date": "2025-06-05"})
    summary = DaySummary(date="2025-06-03", xp_earned=15, is_sealed=True)

    nxt = award_sealed_day(summary, 2, now=9)(prev)

    assert nxt.xp == 15
    assert nxt.best_streak == 7
    assert nxt.last_sealed_date == "2025-06-05"
    assert nxt.current_streak == prev.current_streak
    assert nxt.updated_at == 9


def _seal_perfect_day(storage, date):
    plan = DayPlan(date=date, items=[_item("h", "habit", False)])
    plan = set_item_completed(plan, "h", True)
    asyncio.run(storage.save_day_plan(plan))
    return asyncio.run(seal_day(storage, date))


def test_seal_day_saves_summary_and_awards_progress():
    storage = LocalStorageAdapter(JsonKeyValueStore())

    summary, progress = _seal_perfect_day(storage, "2025-06-01")

    assert summary.is_sealed is True
    assert summary.sealed_at is not None
    assert asyncio.run(storage.get_day_plan("2025-06-01")).is_sealed is True
    assert asyncio.run(storage.get_day_summary("2025-06-01")) == summary
    assert progress.xp == summary.xp_earned
    assert progress.current_streak == 1
    assert progress.last_sealed_date == "2025-06-01"


def test_sealing_twice_is_refused():
    storage = LocalStorageAdapter(JsonKeyValueStore())
    _seal_perfect_day(storage, "2025-06-01")
    with pytest.raises(DayPlanSealedError):
        asyncio.run(seal_day(storage, "2025-06-01"))


def test_streak_counts_consecutive_perfect_sealed_days():
    storage = LocalStorageAdapter(JsonKeyValueStore())
    _seal_perfect_day(storage, "2025-05-30")
    _seal_perfect_day(storage, "2025-06-01")
    _, progress = _seal_perfect_day(storage, "2025-06-02")

    assert asyncio.run(get_streak(storage, "2025-06-02")) == 2
    assert asyncio.run(get_streak(storage, "2025-05-31")) == 0
    assert progress.current_streak == 2
    assert progress.best_streak == 2

    asyncio.run(storage.save_day_plan(DayPlan(date="2025-06-03", items=[_item("h", "habit", False)])))
    asyncio.run(seal_day(storage, "2025-06-03"))
    assert asyncio.run(get_streak(storage, "2025-06-03")) == 0


class _FlakyStorage(LocalStorageAdapter):
    """Fails the first write of the named operation, then behaves normally."""

    def __init__(self, failing: str) -> None:
        super().__init__(JsonKeyValueStore())
        self.failing = failing

    def _maybe_fail(self, name: str) -> None:
        if self.failing == name:
            self.failing = ""
            raise StorageError(f"{name} unavailable")

    async def save_day_summary(self, summary):
        self._maybe_fail("save_day_summary")
        await super().save_day_summary(summary)

    async def update_user_progress(self, updater):
        self._maybe_fail("update_user_progress")
        return await super().update_user_progress(updater)


@pytest.mark.parametrize("failing", ["save_day_summary", "update_user_progress"])
def test_failed_seal_leaves_day_open_for_retry(failing):
    storage = _FlakyStorage(failing)

    with pytest.raises(StorageError):
        _seal_perfect_day(storage, "2025-06-01")
    assert asyncio.run(storage.get_day_plan("2025-06-01")).is_sealed is False

    summary, progress = asyncio.run(seal_day(storage, "2025-06-01"))
    assert asyncio.run(storage.get_day_plan("2025-06-01")).is_sealed is True
    assert asyncio.run(storage.get_day_summary("2025-06-01")) == summary
    assert progress.xp == summary.xp_earned
    assert progress.current_streak == 1
