from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from services import journal_service
from storage.base import StorageAdapter
from storage.factory import get_storage

router = APIRouter(prefix="/journal", tags=["journal"])


class JournalCreateRequest(BaseModel):
    date: str
    content: str = Field(default="", max_length=20000)
    activate: bool = True


class JournalUpdateRequest(BaseModel):
    content: str = Field(max_length=20000)


class ActiveEntryRequest(BaseModel):
    entry_id: Optional[str] = None


@router.get("")
async def list_entries(date: Optional[str] = None, storage: StorageAdapter = Depends(get_storage)):
    try:
        entries = await journal_service.list_entries(storage, date=date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [e.to_json() for e in entries]


@router.get("/active")
async def get_active_entry(storage: StorageAdapter = Depends(get_storage)):
    entry = await journal_service.get_active_entry(storage)
    return entry.to_json() if entry else None


@router.put("/active")
async def set_active_entry(req: ActiveEntryRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        entry = await journal_service.set_active_entry(storage, req.entry_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return entry.to_json() if entry else None


@router.post("", status_code=201)
async def create_entry(req: JournalCreateRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        entry = await journal_service.create_entry(storage, req.date, req.content, activate=req.activate)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return entry.to_json()


@router.put("/{entry_id}")
async def update_entry(entry_id: str, req: JournalUpdateRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        entry = await journal_service.update_entry(storage, entry_id, req.content)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return entry.to_json()


@router.delete("/{entry_id}")
async def delete_entry(entry_id: str, storage: StorageAdapter = Depends(get_storage)):
    try:
        await journal_service.delete_entry(storage, entry_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "deleted"}
