from __future__ import annotations

from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from auth.utils import UserIdentity, get_identity
from services import day_plan_service, summary_service
from services.day_plan_service import MergeOptions
from services.preset_service import get_active_preset
from services.rank_service import compute_rank_from_xp
from services.save_queue import SaveQueue
from storage.base import StorageAdapter
from storage.factory import get_storage
from storage.models import DayPlan

router = APIRouter(prefix="/days", tags=["days"])


class SyncRequest(BaseModel):
    keep_completion: bool = True
    keep_manual: bool = True
    preset_id: Optional[str] = None


class DayItemCreateRequest(BaseModel):
    kind: str
    text: str = Field(min_length=1, max_length=300)
    time: Optional[str] = None


class DayItemUpdateRequest(BaseModel):
    text: Optional[str] = Field(default=None, min_length=1, max_length=300)
    time: Optional[str] = None


class DayItemCompletedRequest(BaseModel):
    completed: bool


def get_save_queue(request: Request, identity: UserIdentity = Depends(get_identity)) -> SaveQueue:
    return request.app.state.save_queues.get(identity.user_id())


async def _plan_payload(storage: StorageAdapter, plan: DayPlan, **extra) -> dict:
    preset = await get_active_preset(storage)
    stale = bool(preset) and not plan.is_sealed and day_plan_service.is_preset_stale(plan, preset)
    return {"plan": plan.to_json(), "presetStale": stale, **extra}


async def _edit_plan(
    storage: StorageAdapter,
    queue: SaveQueue,
    date: str,
    edit: Callable[[DayPlan], DayPlan],
) -> DayPlan:
    async def _run() -> DayPlan:
        plan = await day_plan_service.load_day_plan(storage, date)
        updated = edit(plan)
        await storage.save_day_plan(updated)
        return updated

    try:
        return await queue.submit(_run)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("")
async def list_days(storage: StorageAdapter = Depends(get_storage)):
    return {"dates": await storage.list_day_plan_dates()}


@router.get("/{date}")
async def get_day(
    date: str,
    storage: StorageAdapter = Depends(get_storage),
    queue: SaveQueue = Depends(get_save_queue),
):
    """Load a day, seeding it from the active preset on first visit."""
    try:
        plan, seeded = await queue.submit(lambda: day_plan_service.initialize_day_plan(storage, date))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await _plan_payload(storage, plan, seeded=seeded)


@router.post("/{date}/sync")
async def sync_day(
    date: str,
    req: SyncRequest,
    storage: StorageAdapter = Depends(get_storage),
    queue: SaveQueue = Depends(get_save_queue),
):
    options = MergeOptions(keep_completion=req.keep_completion, keep_manual=req.keep_manual)
    try:
        plan = await queue.submit(
            lambda: day_plan_service.sync_preset_into_day(storage, date, options, preset_id=req.preset_id)
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await _plan_payload(storage, plan)


@router.post("/{date}/items", status_code=201)
async def add_item(
    date: str,
    req: DayItemCreateRequest,
    storage: StorageAdapter = Depends(get_storage),
    queue: SaveQueue = Depends(get_save_queue),
):
    plan = await _edit_plan(
        storage, queue, date, lambda p: day_plan_service.add_manual_item(p, req.kind, req.text, req.time)
    )
    return plan.to_json()


@router.patch("/{date}/items/{item_id}")
async def edit_item(
    date: str,
    item_id: str,
    req: DayItemUpdateRequest,
    storage: StorageAdapter = Depends(get_storage),
    queue: SaveQueue = Depends(get_save_queue),
):
    plan = await _edit_plan(
        storage, queue, date, lambda p: day_plan_service.edit_item(p, item_id, text=req.text, time=req.time)
    )
    return plan.to_json()


@router.put("/{date}/items/{item_id}/completed")
async def set_item_completed(
    date: str,
    item_id: str,
    req: DayItemCompletedRequest,
    storage: StorageAdapter = Depends(get_storage),
    queue: SaveQueue = Depends(get_save_queue),
):
    plan = await _edit_plan(
        storage, queue, date, lambda p: day_plan_service.set_item_completed(p, item_id, req.completed)
    )
    return plan.to_json()


@router.delete("/{date}/items/{item_id}")
async def delete_item(
    date: str,
    item_id: str,
    storage: StorageAdapter = Depends(get_storage),
    queue: SaveQueue = Depends(get_save_queue),
):
    plan = await _edit_plan(storage, queue, date, lambda p: day_plan_service.remove_item(p, item_id))
    return plan.to_json()


@router.get("/{date}/summary")
async def get_day_summary(date: str, storage: StorageAdapter = Depends(get_storage)):
    try:
        summary = await summary_service.preview_day_summary(storage, date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return summary.to_json()


@router.post("/{date}/seal")
async def seal_day(
    date: str,
    storage: StorageAdapter = Depends(get_storage),
    queue: SaveQueue = Depends(get_save_queue),
):
    try:
        summary, progress = await queue.submit(lambda: summary_service.seal_day(storage, date))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "summary": summary.to_json(),
        "progress": progress.to_json(),
        "rank": compute_rank_from_xp(progress.xp).to_dict(),
    }
