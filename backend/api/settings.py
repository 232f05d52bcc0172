import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from config import settings as app_settings
from services.data_service import export_user_data, reset_user_data
from storage.base import StorageAdapter
from storage.factory import get_storage

router = APIRouter(prefix="/settings", tags=["settings"])
logger = logging.getLogger(__name__)


class ResetDataRequest(BaseModel):
    confirmation: str


@router.get("")
async def get_settings(storage: StorageAdapter = Depends(get_storage)):
    return {
        "app": app_settings.APP_NAME,
        "storageBackend": storage.backend_name,
        "defaultCurrency": app_settings.DEFAULT_CURRENCY,
        "taskScoreCap": app_settings.TASK_SCORE_CAP,
    }


@router.get("/export")
async def export_data(storage: StorageAdapter = Depends(get_storage)):
    return await export_user_data(storage)


@router.post("/reset")
async def reset_data(req: ResetDataRequest, storage: StorageAdapter = Depends(get_storage)):
    """Delete all of the user's presets, days, summaries, progress, journal, goals and ledger."""
    if (req.confirmation or "").strip().upper() != "RESET":
        raise HTTPException(status_code=400, detail='Type "RESET" to confirm')
    counts = await reset_user_data(storage)
    logger.info(f"Data reset requested via settings ({storage.backend_name})")
    return {"status": "ok", "deleted": counts}
