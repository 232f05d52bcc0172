from __future__ import annotations

import logging

from storage.base import StorageAdapter
from storage.errors import StorageError
from storage.models import Preset, PresetItem
from utils.datetime_utils import now_ms
from utils.ids import generate_id
from utils.text import clean_text

logger = logging.getLogger(__name__)

VALID_LISTS = {"habits", "tasks"}

_DEFAULT_PRESETS: tuple[tuple[str, str, tuple[str, ...], tuple[tuple[str, str], ...]], ...] = (
    (
        "default",
        "Default",
        ("morning sauna", "deep work block", "read 30 mins", "zero sugar"),
        (("email client reports", "09:00"), ("team standup meeting", "14:00"), ("review quarterly goals", "16:30")),
    ),
    (
        "trading",
        "Trading Day",
        ("market prep", "trading journal", "no news check"),
        (("pre-market analysis", "08:00"), ("trade review session", "15:00")),
    ),
    (
        "recovery",
        "Recovery",
        ("light walk", "meditation", "early sleep"),
        (("gentle yoga", "10:00"),),
    ),
)


def default_presets(now: int | None = None) -> dict[str, Preset]:
    stamp = now if now is not None else now_ms()
    presets: dict[str, Preset] = {}
    for preset_id, name, habits, tasks in _DEFAULT_PRESETS:
        presets[preset_id] = Preset(
            id=preset_id,
            name=name,
            habits=[PresetItem(id=generate_id(), text=text) for text in habits],
            tasks=[PresetItem(id=generate_id(), text=text, time=time) for text, time in tasks],
            updated_at=stamp,
        )
    return presets


def _with_item_ids(preset: Preset) -> tuple[Preset, bool]:
    """Give id-less items a fresh id. Existing ids are never replaced."""
    changed = False

    def _fix(items: list[PresetItem]) -> list[PresetItem]:
        nonlocal changed
        fixed = []
        for item in items:
            if item.id and item.id.strip():
                fixed.append(item)
            else:
                changed = True
                fixed.append(item.model_copy(update={"id": generate_id()}))
        return fixed

    habits = _fix(preset.habits)
    tasks = _fix(preset.tasks)
    if not changed:
        return preset, False
    return preset.model_copy(update={"habits": habits, "tasks": tasks}), True


async def load_presets(storage: StorageAdapter) -> dict[str, Preset]:
    """All presets, seeding the built-in set the first time storage is empty."""
    presets = await storage.get_presets()
    if not presets:
        seeded = default_presets()
        try:
            await storage.save_presets(seeded)
        except StorageError as e:
            # Read-only callers (signed out, unconfigured backend) still get usable presets.
            logger.warning(f"Could not persist default presets: {e}")
        return seeded

    normalized: dict[str, Preset] = {}
    backfilled = False
    for preset_id, preset in presets.items():
        fixed, changed = _with_item_ids(preset)
        if changed:
            logger.info(f"Backfilled missing item ids for preset '{preset_id}'")
            backfilled = True
        normalized[preset_id] = fixed
    if backfilled:
        # Keep backfilled ids stable across loads.
        try:
            await storage.save_presets(normalized)
        except StorageError as e:
            logger.warning(f"Could not persist backfilled preset item ids: {e}")
    return normalized


async def get_active_preset(storage: StorageAdapter) -> Preset | None:
    presets = await load_presets(storage)
    active_id = await storage.get_active_preset_id()
    if active_id and active_id in presets:
        return presets[active_id]
    if "default" in presets:
        return presets["default"]
    return next(iter(presets.values()), None)


async def set_active_preset(storage: StorageAdapter, preset_id: str) -> Preset:
    presets = await load_presets(storage)
    preset = presets.get(preset_id)
    if preset is None:
        raise LookupError(f"Preset {preset_id} not found")
    await storage.set_active_preset_id(preset_id)
    return preset


def unique_preset_name(base_name: str, existing: dict[str, Preset], *, exclude_id: str | None = None) -> str:
    taken = {p.name.lower() for pid, p in existing.items() if pid != exclude_id}
    candidate = base_name
    suffix = 1
    while candidate.lower() in taken:
        suffix += 1
        candidate = f"{base_name} ({suffix})"
    return candidate


def _require_name(name: str) -> str:
    cleaned = clean_text(name)
    if not cleaned:
        raise ValueError("name must not be empty")
    return cleaned


def _require_list(list_name: str) -> str:
    if list_name not in VALID_LISTS:
        raise ValueError(f"list must be one of {sorted(VALID_LISTS)}")
    return list_name


def _get_preset(presets: dict[str, Preset], preset_id: str) -> Preset:
    preset = presets.get(preset_id)
    if preset is None:
        raise LookupError(f"Preset {preset_id} not found")
    return preset


def _next_stamp(preset: Preset) -> int:
    # Structural edits must move updatedAt forward even within the same millisecond.
    return max(now_ms(), preset.updated_at + 1)


async def _save_one(storage: StorageAdapter, presets: dict[str, Preset], preset: Preset) -> Preset:
    await storage.save_presets({**presets, preset.id: preset})
    return preset


async def create_preset(
    storage: StorageAdapter,
    name: str,
    *,
    copy_from: str | None = None,
) -> Preset:
    presets = await load_presets(storage)
    habits: list[PresetItem] = []
    tasks: list[PresetItem] = []
    if copy_from:
        source = _get_preset(presets, copy_from)
        habits = [item.model_copy(update={"id": generate_id()}) for item in source.habits]
        tasks = [item.model_copy(update={"id": generate_id()}) for item in source.tasks]
    preset = Preset(
        id=generate_id(),
        name=unique_preset_name(_require_name(name), presets),
        habits=habits,
        tasks=tasks,
        updated_at=now_ms(),
    )
    return await _save_one(storage, presets, preset)


async def rename_preset(storage: StorageAdapter, preset_id: str, name: str) -> Preset:
    """Renaming is not a structural change, so updatedAt is left alone."""
    presets = await load_presets(storage)
    preset = _get_preset(presets, preset_id)
    renamed = preset.model_copy(
        update={"name": unique_preset_name(_require_name(name), presets, exclude_id=preset_id)}
    )
    return await _save_one(storage, presets, renamed)


async def delete_preset(storage: StorageAdapter, preset_id: str, *, replacement_id: str | None = None) -> str:
    """Delete a preset and re-point the active preset and day plans at a replacement.

    Returns the replacement preset id.
    """
    presets = await load_presets(storage)
    _get_preset(presets, preset_id)
    remaining = {pid: p for pid, p in presets.items() if pid != preset_id}
    if not remaining:
        raise ValueError("Cannot delete the last preset")
    if replacement_id is not None:
        _get_preset(remaining, replacement_id)
    else:
        replacement_id = "default" if "default" in remaining else next(iter(remaining))

    await storage.save_presets(remaining)
    if await storage.get_active_preset_id() == preset_id:
        await storage.set_active_preset_id(replacement_id)

    repointed = 0
    for date in await storage.list_day_plan_dates():
        plan = await storage.get_day_plan(date)
        if plan.active_preset_id == preset_id:
            await storage.save_day_plan(plan.model_copy(update={"active_preset_id": replacement_id}))
            repointed += 1
    logger.info(f"Deleted preset '{preset_id}'; {repointed} day plan(s) now reference '{replacement_id}'")
    return replacement_id


async def add_preset_item(
    storage: StorageAdapter,
    preset_id: str,
    list_name: str,
    text: str,
    time: str | None = None,
) -> Preset:
    presets = await load_presets(storage)
    preset = _get_preset(presets, preset_id)
    list_name = _require_list(list_name)
    cleaned = clean_text(text)
    if not cleaned:
        raise ValueError("text must not be empty")
    item_time = (time or "").strip() or None
    item = PresetItem(id=generate_id(), text=cleaned, time=item_time if list_name == "tasks" else None)
    items = [*getattr(preset, list_name), item]
    return await _save_one(storage, presets, preset.model_copy(update={list_name: items, "updated_at": _next_stamp(preset)}))


async def update_preset_item(
    storage: StorageAdapter,
    preset_id: str,
    item_id: str,
    *,
    text: str | None = None,
    time: str | None = None,
) -> Preset:
    presets = await load_presets(storage)
    preset = _get_preset(presets, preset_id)
    for list_name in ("habits", "tasks"):
        items = getattr(preset, list_name)
        for idx, item in enumerate(items):
            if item.id != item_id:
                continue
            update: dict = {}
            if text is not None:
                cleaned = clean_text(text)
                if not cleaned:
                    raise ValueError("text must not be empty")
                update["text"] = cleaned
            if time is not None:
                if list_name != "tasks":
                    raise ValueError("only tasks carry a time")
                update["time"] = time.strip() or None
            new_items = [*items[:idx], item.model_copy(update=update), *items[idx + 1:]]
            return await _save_one(
                storage, presets, preset.model_copy(update={list_name: new_items, "updated_at": _next_stamp(preset)})
            )
    raise LookupError(f"Item {item_id} not found in preset {preset_id}")


async def remove_preset_item(storage: StorageAdapter, preset_id: str, item_id: str) -> Preset:
    presets = await load_presets(storage)
    preset = _get_preset(presets, preset_id)
    for list_name in ("habits", "tasks"):
        items = getattr(preset, list_name)
        if any(item.id == item_id for item in items):
            kept = [item for item in items if item.id != item_id]
            return await _save_one(
                storage, presets, preset.model_copy(update={list_name: kept, "updated_at": _next_stamp(preset)})
            )
    raise LookupError(f"Item {item_id} not found in preset {preset_id}")


async def reorder_preset_items(
    storage: StorageAdapter,
    preset_id: str,
    list_name: str,
    ordered_ids: list[str],
) -> Preset:
    presets = await load_presets(storage)
    preset = _get_preset(presets, preset_id)
    list_name = _require_list(list_name)
    items = getattr(preset, list_name)
    by_id = {item.id: item for item in items}
    if len(ordered_ids) != len(items) or set(ordered_ids) != set(by_id):
        raise ValueError("ordered_ids must list every item of the list exactly once")
    reordered = [by_id[item_id] for item_id in ordered_ids]
    return await _save_one(
        storage, presets, preset.model_copy(update={list_name: reordered, "updated_at": _next_stamp(preset)})
    )
