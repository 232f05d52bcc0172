from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from services import preset_service
from storage.base import StorageAdapter
from storage.factory import get_storage

router = APIRouter(prefix="/presets", tags=["presets"])


class PresetCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    copy_from: Optional[str] = None


class PresetRenameRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)


class ActivePresetRequest(BaseModel):
    preset_id: str


class PresetItemCreateRequest(BaseModel):
    list_name: str
    text: str = Field(min_length=1, max_length=300)
    time: Optional[str] = None


class PresetItemUpdateRequest(BaseModel):
    text: Optional[str] = Field(default=None, min_length=1, max_length=300)
    time: Optional[str] = None


class PresetReorderRequest(BaseModel):
    list_name: str
    ordered_ids: list[str]


@router.get("")
async def list_presets(storage: StorageAdapter = Depends(get_storage)):
    presets = await preset_service.load_presets(storage)
    active = await preset_service.get_active_preset(storage)
    return {
        "presets": [p.to_json() for p in presets.values()],
        "activePresetId": active.id if active else None,
    }


@router.get("/active")
async def get_active_preset(storage: StorageAdapter = Depends(get_storage)):
    preset = await preset_service.get_active_preset(storage)
    if preset is None:
        raise HTTPException(status_code=404, detail="No presets")
    return preset.to_json()


@router.put("/active")
async def set_active_preset(req: ActivePresetRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        preset = await preset_service.set_active_preset(storage, req.preset_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return preset.to_json()


@router.post("", status_code=201)
async def create_preset(req: PresetCreateRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        preset = await preset_service.create_preset(storage, req.name, copy_from=req.copy_from)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return preset.to_json()


@router.patch("/{preset_id}")
async def rename_preset(preset_id: str, req: PresetRenameRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        preset = await preset_service.rename_preset(storage, preset_id, req.name)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return preset.to_json()


@router.delete("/{preset_id}")
async def delete_preset(
    preset_id: str,
    replacement_id: Optional[str] = None,
    storage: StorageAdapter = Depends(get_storage),
):
    try:
        replacement = await preset_service.delete_preset(storage, preset_id, replacement_id=replacement_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "deleted", "replacementId": replacement}


@router.post("/{preset_id}/items", status_code=201)
async def add_item(preset_id: str, req: PresetItemCreateRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        preset = await preset_service.add_preset_item(storage, preset_id, req.list_name, req.text, req.time)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return preset.to_json()


@router.patch("/{preset_id}/items/{item_id}")
async def update_item(
    preset_id: str,
    item_id: str,
    req: PresetItemUpdateRequest,
    storage: StorageAdapter = Depends(get_storage),
):
    try:
        preset = await preset_service.update_preset_item(storage, preset_id, item_id, text=req.text, time=req.time)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return preset.to_json()


@router.delete("/{preset_id}/items/{item_id}")
async def remove_item(preset_id: str, item_id: str, storage: StorageAdapter = Depends(get_storage)):
    try:
        preset = await preset_service.remove_preset_item(storage, preset_id, item_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return preset.to_json()


@router.put("/{preset_id}/order")
async def reorder_items(preset_id: str, req: PresetReorderRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        preset = await preset_service.reorder_preset_items(storage, preset_id, req.list_name, req.ordered_ids)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return preset.to_json()
