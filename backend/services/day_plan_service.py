"""Day plans: the preset merge engine plus the small edits the UI makes to a day.

`merge_preset_into_day_plan` is pure. It reconciles the current state of a
preset into an existing day plan and returns a new plan, keeping completion,
user-edited text and manual items according to `MergeOptions`. Preset items
that left the template move to `archived` instead of disappearing.

Matching, per preset item (habits first, then tasks, preset order kept):
  1. identity: an unclaimed plan item of the same kind whose `presetItemId`
     equals the preset item's id. All identity matches are settled before any
     text match, so a renamed item can't be stolen by a same-named sibling.
  2. fallback: the first unclaimed plan item, in plan order, of the same kind
     whose normalized text equals the preset item's normalized text.
A plan item is claimed at most once per merge.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from services.preset_service import get_active_preset, load_presets
from storage.base import StorageAdapter
from storage.errors import NotAuthenticatedError, StorageNotConfiguredError
from storage.models import DayPlan, DayPlanItem, ItemKind, Preset, PresetItem
from utils.datetime_utils import now_ms, parse_date_key
from utils.ids import generate_id
from utils.text import clean_text, normalize_text

logger = logging.getLogger(__name__)

VALID_KINDS = {"habit", "task"}


class DayPlanSealedError(Exception):
    """The day has been sealed and its plan can no longer change."""


@dataclass(frozen=True)
class MergeOptions:
    keep_completion: bool = True
    keep_manual: bool = True


def merge_preset_into_day_plan(
    preset: Preset,
    plan: DayPlan,
    options: MergeOptions,
    *,
    now: int | None = None,
    id_factory: Callable[[], str] = generate_id,
) -> DayPlan:
    created_at = now if now is not None else now_ms()
    plan_items = list(plan.items or [])

    by_identity: dict[tuple[str, str], DayPlanItem] = {}
    by_text: dict[tuple[str, str], list[DayPlanItem]] = {}
    for item in plan_items:
        if item.source != "preset":
            continue
        if item.preset_item_id:
            # Duplicate links are a data bug upstream; the later item wins the slot.
            by_identity[(item.kind, item.preset_item_id)] = item
        by_text.setdefault((item.kind, normalize_text(item.text)), []).append(item)

    wanted: list[tuple[ItemKind, PresetItem]] = [("habit", h) for h in (preset.habits or [])]
    wanted += [("task", t) for t in (preset.tasks or [])]

    claimed: set[str] = set()
    matches: list[Optional[DayPlanItem]] = [None] * len(wanted)

    for idx, (kind, preset_item) in enumerate(wanted):
        if not preset_item.id:
            continue
        candidate = by_identity.get((kind, preset_item.id))
        if candidate is not None and candidate.id not in claimed:
            matches[idx] = candidate
            claimed.add(candidate.id)

    for idx, (kind, preset_item) in enumerate(wanted):
        if matches[idx] is not None:
            continue
        for candidate in by_text.get((kind, normalize_text(preset_item.text)), []):
            if candidate.id not in claimed:
                matches[idx] = candidate
                claimed.add(candidate.id)
                break

    merged: list[DayPlanItem] = []
    for (kind, preset_item), match in zip(wanted, matches):
        if match is None:
            merged.append(
                DayPlanItem(
                    id=id_factory(),
                    kind=kind,
                    text=preset_item.text,
                    time=preset_item.time if kind == "task" else None,
                    completed=False,
                    source="preset",
                    preset_id=preset.id,
                    preset_item_id=preset_item.id,
                    user_edited=False,
                    created_at=created_at,
                )
            )
            continue

        update: dict = {
            "preset_id": preset.id,
            "preset_item_id": preset_item.id,
            "completed": match.completed if options.keep_completion else False,
        }
        if not match.user_edited:
            update["text"] = preset_item.text
            if kind == "task":
                update["time"] = preset_item.time
        merged.append(match.model_copy(update=update))

    archived = [item.model_copy() for item in (plan.archived or [])]
    archived += [
        item.model_copy()
        for item in plan_items
        if item.source == "preset" and item.id not in claimed
    ]

    if options.keep_manual:
        merged += [item.model_copy() for item in plan_items if item.source == "manual"]

    return plan.model_copy(
        update={
            "active_preset_id": preset.id,
            "preset_updated_at": preset.updated_at,
            "items": merged,
            "archived": archived,
        }
    )


def is_preset_stale(plan: DayPlan, preset: Preset) -> bool:
    """True when the plan hasn't absorbed the preset's latest structural change."""
    if plan.active_preset_id != preset.id:
        return True
    if plan.preset_updated_at is None:
        return True
    return plan.preset_updated_at < preset.updated_at


def needs_seeding(plan: DayPlan) -> bool:
    if plan.is_sealed or plan.active_preset_id is not None:
        return False
    return not any(item.source == "preset" for item in plan.items)


def _require_unsealed(plan: DayPlan) -> None:
    if plan.is_sealed:
        raise DayPlanSealedError(f"Day {plan.date} is sealed")


def _find_item(plan: DayPlan, item_id: str) -> DayPlanItem:
    for item in plan.items:
        if item.id == item_id:
            return item
    raise LookupError(f"Item {item_id} not found in day {plan.date}")


def _replace_item(plan: DayPlan, updated: DayPlanItem) -> DayPlan:
    return plan.model_copy(
        update={"items": [updated if item.id == updated.id else item for item in plan.items]}
    )


def add_manual_item(
    plan: DayPlan,
    kind: str,
    text: str,
    time: str | None = None,
    *,
    now: int | None = None,
    id_factory: Callable[[], str] = generate_id,
) -> DayPlan:
    _require_unsealed(plan)
    if kind not in VALID_KINDS:
        raise ValueError(f"kind must be one of {sorted(VALID_KINDS)}")
    cleaned = clean_text(text)
    if not cleaned:
        raise ValueError("text must not be empty")
    item = DayPlanItem(
        id=id_factory(),
        kind=kind,
        text=cleaned,
        time=((time or "").strip() or None) if kind == "task" else None,
        completed=False,
        source="manual",
        user_edited=False,
        created_at=now if now is not None else now_ms(),
    )
    return plan.model_copy(update={"items": [*plan.items, item]})


def edit_item(plan: DayPlan, item_id: str, *, text: str | None = None, time: str | None = None) -> DayPlan:
    """Explicit user edit. Marks the item user-edited so later merges leave its text and time alone."""
    _require_unsealed(plan)
    item = _find_item(plan, item_id)
    update: dict = {"user_edited": True}
    if text is not None:
        cleaned = clean_text(text)
        if not cleaned:
            raise ValueError("text must not be empty")
        update["text"] = cleaned
    if time is not None:
        if item.kind != "task":
            raise ValueError("only tasks carry a time")
        update["time"] = time.strip() or None
    return _replace_item(plan, item.model_copy(update=update))


def set_item_completed(plan: DayPlan, item_id: str, completed: bool) -> DayPlan:
    _require_unsealed(plan)
    item = _find_item(plan, item_id)
    return _replace_item(plan, item.model_copy(update={"completed": bool(completed)}))


def remove_item(plan: DayPlan, item_id: str) -> DayPlan:
    _require_unsealed(plan)
    _find_item(plan, item_id)
    return plan.model_copy(update={"items": [item for item in plan.items if item.id != item_id]})


async def load_day_plan(storage: StorageAdapter, date: str) -> DayPlan:
    parse_date_key(date)
    return await storage.get_day_plan(date)


async def initialize_day_plan(
    storage: StorageAdapter,
    date: str,
) -> tuple[DayPlan, bool]:
    """Load a day and, on first visit, seed it from the active preset.

    Returns the plan and whether it was seeded (and saved).
    """
    plan = await load_day_plan(storage, date)
    if not needs_seeding(plan):
        return plan, False

    preset = await get_active_preset(storage)
    if preset is None or not (preset.habits or preset.tasks):
        return plan, False

    seeded = merge_preset_into_day_plan(preset, plan, MergeOptions(keep_completion=True, keep_manual=True))
    try:
        await storage.save_day_plan(seeded)
    except (NotAuthenticatedError, StorageNotConfiguredError) as e:
        # Signed-out visitors still see the preset, it just isn't persisted.
        logger.warning(f"Day {date} seeded in memory only: {e}")
        return seeded, False
    logger.info(f"Seeded day {date} from preset '{preset.id}' ({len(seeded.items)} items)")
    return seeded, True


async def sync_preset_into_day(
    storage: StorageAdapter,
    date: str,
    options: MergeOptions,
    *,
    preset_id: str | None = None,
) -> DayPlan:
    plan = await load_day_plan(storage, date)
    _require_unsealed(plan)

    if preset_id:
        preset = (await load_presets(storage)).get(preset_id)
    else:
        preset = await get_active_preset(storage)
    if preset is None:
        raise LookupError(f"Preset {preset_id or '(active)'} not found")

    merged = merge_preset_into_day_plan(preset, plan, options)
    await storage.save_day_plan(merged)
    if not options.keep_manual:
        dropped = sum(1 for item in plan.items if item.source == "manual")
        if dropped:
            logger.info(f"Sync of day {date} dropped {dropped} manual item(s)")
    return merged
