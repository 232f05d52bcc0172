from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from services import summary_service
from storage.base import StorageAdapter
from storage.factory import get_storage
from utils.datetime_utils import date_key, today_for_tz

router = APIRouter(prefix="/summaries", tags=["summaries"])


@router.get("")
async def get_summaries(limit: Optional[int] = None, storage: StorageAdapter = Depends(get_storage)):
    """Sealed day summaries, newest first."""
    summaries = await summary_service.list_sealed_summaries(storage, limit=limit)
    return [s.to_json() for s in summaries]


@router.get("/streak")
async def get_streak(
    date: Optional[str] = None,
    tz: Optional[str] = None,
    storage: StorageAdapter = Depends(get_storage),
):
    target = date or date_key(today_for_tz(tz))
    try:
        streak = await summary_service.get_streak(storage, target)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"date": target, "streak": streak}


@router.get("/{date}")
async def get_summary(date: str, storage: StorageAdapter = Depends(get_storage)):
    summary = await storage.get_day_summary(date)
    if summary is None:
        raise HTTPException(status_code=404, detail="Summary not found")
    return summary.to_json()
