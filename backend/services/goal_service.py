from __future__ import annotations

from storage.base import StorageAdapter
from storage.models import Goal
from utils.datetime_utils import now_ms
from utils.ids import generate_id
from utils.text import clean_text

VALID_FILTERS = {"open", "done", "all"}


def _find(goals: list[Goal], goal_id: str) -> int:
    for idx, goal in enumerate(goals):
        if goal.id == goal_id:
            return idx
    raise LookupError(f"Goal {goal_id} not found")


def _require_text(text: str) -> str:
    cleaned = clean_text(text)
    if not cleaned:
        raise ValueError("text must not be empty")
    return cleaned


async def list_goals(storage: StorageAdapter, status: str = "all") -> list[Goal]:
    if status not in VALID_FILTERS:
        raise ValueError(f"status must be one of {sorted(VALID_FILTERS)}")
    goals = await storage.get_goals()
    if status == "open":
        goals = [g for g in goals if not g.done]
    elif status == "done":
        goals = [g for g in goals if g.done]
    # Open goals first, oldest first within each group.
    return sorted(goals, key=lambda g: (g.done, g.created_at))


async def create_goal(storage: StorageAdapter, text: str, tag: str | None = None) -> Goal:
    stamp = now_ms()
    goal = Goal(
        id=generate_id(),
        text=_require_text(text),
        tag=clean_text(tag) or None if tag else None,
        created_at=stamp,
        updated_at=stamp,
    )
    await storage.save_goals([*await storage.get_goals(), goal])
    return goal


async def update_goal(
    storage: StorageAdapter,
    goal_id: str,
    *,
    text: str | None = None,
    tag: str | None = None,
    done: bool | None = None,
) -> Goal:
    goals = await storage.get_goals()
    idx = _find(goals, goal_id)
    goal = goals[idx]
    stamp = now_ms()
    update: dict = {"updated_at": stamp}
    if text is not None:
        update["text"] = _require_text(text)
    if tag is not None:
        update["tag"] = clean_text(tag) or None
    if done is not None and done != goal.done:
        update["done"] = done
        update["done_at"] = stamp if done else None
    goals[idx] = goal.model_copy(update=update)
    await storage.save_goals(goals)
    return goals[idx]


async def delete_goal(storage: StorageAdapter, goal_id: str) -> None:
    goals = await storage.get_goals()
    _find(goals, goal_id)
    await storage.save_goals([g for g in goals if g.id != goal_id])
