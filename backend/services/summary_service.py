"""Day scoring, sealing and streaks.

A day's Operator score is its habit completion. Tasks add to the combined
score, but only up to `TASK_SCORE_CAP` of them count, so a long to-do list
can't drown out the habits.
"""
from __future__ import annotations

import logging

from config import settings
from services.day_plan_service import DayPlanSealedError, load_day_plan
from services.progress_service import award_sealed_day
from storage.base import StorageAdapter
from storage.models import DayPlan, DayStatus, DaySummary, UserProgress
from utils.datetime_utils import now_ms, previous_date_key

logger = logging.getLogger(__name__)

XP_PER_SCORE_POINT = 0.1
XP_BONUS = {"perfect": 10, "complete": 5, "partial": 0, "failed": 0}

# Streak scans stop here even if every earlier day was sealed at 100%.
MAX_STREAK_LOOKBACK_DAYS = 3650


def _pct(done: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(done / total * 100)


def _status(operator_pct: int, total_score_pct: int) -> DayStatus:
    if operator_pct == 100 and total_score_pct == 100:
        return "perfect"
    if operator_pct == 100:
        return "complete"
    if total_score_pct >= 50:
        return "partial"
    return "failed"


def compute_day_summary(
    plan: DayPlan,
    *,
    sealed_at: int | None = None,
    task_cap: int | None = None,
) -> DaySummary:
    cap = settings.TASK_SCORE_CAP if task_cap is None else task_cap
    cap = max(int(cap), 0)

    habits = [item for item in plan.items if item.kind == "habit"]
    tasks = [item for item in plan.items if item.kind == "task"]
    habits_done = sum(1 for item in habits if item.completed)
    tasks_done = sum(1 for item in tasks if item.completed)

    counted_tasks = min(len(tasks), cap)
    counted_done = min(tasks_done, counted_tasks)

    operator_pct = _pct(habits_done, len(habits))
    total_score_pct = _pct(habits_done + counted_done, len(habits) + counted_tasks)
    status = _status(operator_pct, total_score_pct)
    xp_earned = round(total_score_pct * XP_PER_SCORE_POINT) + XP_BONUS[status]

    return DaySummary(
        date=plan.date,
        operator_pct=operator_pct,
        operator_total=len(habits),
        operator_done=habits_done,
        is_sealed=sealed_at is not None,
        sealed_at=sealed_at,
        total_score_pct=total_score_pct,
        habits_pct=operator_pct,
        tasks_pct_capped=_pct(counted_done, counted_tasks),
        habits_total=len(habits),
        habits_done=habits_done,
        tasks_total=len(tasks),
        tasks_done=tasks_done,
        status=status,
        xp_earned=xp_earned,
    )


async def get_streak(storage: StorageAdapter, date: str) -> int:
    """Consecutive sealed 100% Operator days ending at `date` (inclusive)."""
    streak = 0
    cursor = date
    for _ in range(MAX_STREAK_LOOKBACK_DAYS):
        summary = await storage.get_day_summary(cursor)
        if summary is None or not summary.is_sealed or summary.operator_pct != 100:
            break
        streak += 1
        cursor = previous_date_key(cursor)
    return streak


async def seal_day(
    storage: StorageAdapter,
    date: str,
) -> tuple[DaySummary, UserProgress]:
    """Freeze a day: store its summary, credit XP and streaks, then mark the plan sealed.

    The sealed plan is written last, so a sealed plan always has its summary and
    credit. A failure part-way leaves the plan open and the seal can be retried.
    """
    plan = await load_day_plan(storage, date)
    if plan.is_sealed:
        raise DayPlanSealedError(f"Day {date} is already sealed")

    sealed_at = now_ms()
    sealed_plan = plan.model_copy(update={"is_sealed": True})
    summary = compute_day_summary(sealed_plan, sealed_at=sealed_at)

    await storage.save_day_summary(summary)
    streak = await get_streak(storage, date)
    progress = await storage.update_user_progress(award_sealed_day(summary, streak, now=sealed_at))
    await storage.save_day_plan(sealed_plan)
    logger.info(
        f"Sealed day {date}: operator={summary.operator_pct}% total={summary.total_score_pct}% "
        f"status={summary.status} xp=+{summary.xp_earned} streak={streak}"
    )
    return summary, progress


async def list_sealed_summaries(storage: StorageAdapter, *, limit: int | None = None) -> list[DaySummary]:
    summaries = await storage.get_all_sealed_day_summaries()
    if limit is not None:
        summaries = summaries[: max(int(limit), 0)]
    return summaries


async def preview_day_summary(storage: StorageAdapter, date: str) -> DaySummary:
    """Stored summary for sealed days, otherwise a live computation from the plan."""
    stored = await storage.get_day_summary(date)
    if stored is not None and stored.is_sealed:
        return stored
    return compute_day_summary(await load_day_plan(storage, date))
