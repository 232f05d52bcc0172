from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from services.progress_service import default_user_progress
from services.rank_service import RANKS, compute_rank_from_xp
from storage.base import StorageAdapter
from storage.factory import get_storage

router = APIRouter(prefix="/progress", tags=["progress"])


class ProgressPatchRequest(BaseModel):
    xp: Optional[int] = None
    best_streak: Optional[int] = None
    current_streak: Optional[int] = None
    last_sealed_date: Optional[str] = None


@router.get("")
async def get_progress(storage: StorageAdapter = Depends(get_storage)):
    progress = await storage.get_user_progress() or default_user_progress()
    return progress.to_json()


@router.patch("")
async def patch_progress(req: ProgressPatchRequest, storage: StorageAdapter = Depends(get_storage)):
    patch = req.model_dump(exclude_none=True)
    if not patch:
        raise HTTPException(status_code=400, detail="Nothing to update")
    try:
        progress = await storage.set_user_progress(patch)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return progress.to_json()


@router.get("/rank")
async def get_rank(storage: StorageAdapter = Depends(get_storage)):
    progress = await storage.get_user_progress() or default_user_progress()
    return {
        "xp": progress.xp,
        "xpToNext": progress.xp_to_next,
        **compute_rank_from_xp(progress.xp).to_dict(),
        "ranks": [{"key": r.key, "name": r.name, "threshold": r.threshold} for r in RANKS],
    }
