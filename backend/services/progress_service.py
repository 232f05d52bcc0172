"""Pure transformations over UserProgress.

Storage adapters own the read and the write; everything here takes the current
record and returns the next one, so each updater can be tested on its own.
"""
from __future__ import annotations

from typing import Any, Callable

from services.rank_service import compute_rank_from_xp, xp_to_next_rank
from storage.models import DaySummary, UserProgress
from utils.datetime_utils import now_ms

ProgressUpdater = Callable[[UserProgress], UserProgress]

_PATCHABLE_FIELDS = {
    "xp",
    "best_streak",
    "current_streak",
    "last_sealed_date",
    "active_preset_id",
    "updated_at",
}


def default_user_progress(now: int | None = None) -> UserProgress:
    return UserProgress(
        xp=0,
        rank_key=compute_rank_from_xp(0).rank_key,
        xp_to_next=xp_to_next_rank(0),
        best_streak=0,
        current_streak=0,
        last_sealed_date=None,
        updated_at=now if now is not None else now_ms(),
    )


def with_xp(prev: UserProgress, xp: int, *, now: int | None = None) -> UserProgress:
    safe_xp = max(int(xp), 0)
    return prev.model_copy(
        update={
            "xp": safe_xp,
            "rank_key": compute_rank_from_xp(safe_xp).rank_key,
            "xp_to_next": xp_to_next_rank(safe_xp),
            "updated_at": now if now is not None else now_ms(),
        }
    )


def award_sealed_day(summary: DaySummary, streak: int, *, now: int | None = None) -> ProgressUpdater:
    """Updater crediting a freshly sealed day: XP, streaks and last sealed date."""

    def _apply(prev: UserProgress) -> UserProgress:
        nxt = with_xp(prev, prev.xp + max(summary.xp_earned, 0), now=now)
        last = prev.last_sealed_date
        current = prev.current_streak
        # Back-filling an older day leaves the running streak alone.
        if last is None or summary.date >= last:
            last = summary.date
            current = streak
        return nxt.model_copy(
            update={
                "current_streak": current,
                "best_streak": max(prev.best_streak, streak),
                "last_sealed_date": last,
            }
        )

    return _apply


def set_active_preset(preset_id: str | None, *, now: int | None = None) -> ProgressUpdater:
    def _apply(prev: UserProgress) -> UserProgress:
        return prev.model_copy(
            update={"active_preset_id": preset_id, "updated_at": now if now is not None else now_ms()}
        )

    return _apply


def patch_progress(patch: dict[str, Any]) -> ProgressUpdater:
    """Shallow patch; XP changes also refresh the derived rank fields."""
    unknown = set(patch) - _PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown progress fields: {sorted(unknown)}")

    def _apply(prev: UserProgress) -> UserProgress:
        updated_at = patch.get("updated_at")
        nxt = prev
        if "xp" in patch:
            nxt = with_xp(nxt, int(patch["xp"]), now=updated_at)
        rest = {k: v for k, v in patch.items() if k not in {"xp", "updated_at"}}
        rest["updated_at"] = updated_at if updated_at is not None else now_ms()
        return nxt.model_copy(update=rest)

    return _apply
