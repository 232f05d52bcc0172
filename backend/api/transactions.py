from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from services import transaction_service
from storage.base import StorageAdapter
from storage.factory import get_storage

router = APIRouter(prefix="/transactions", tags=["transactions"])


class TransactionCreateRequest(BaseModel):
    kind: str
    amount: float
    date: str
    category: str = Field(default="", max_length=80)
    note: Optional[str] = Field(default=None, max_length=500)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class TransactionUpdateRequest(BaseModel):
    kind: Optional[str] = None
    amount: Optional[float] = None
    date: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=80)
    note: Optional[str] = Field(default=None, max_length=500)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


@router.get("")
async def list_transactions(
    start: Optional[str] = None,
    end: Optional[str] = None,
    kind: Optional[str] = None,
    storage: StorageAdapter = Depends(get_storage),
):
    try:
        items = await transaction_service.list_transactions(storage, start=start, end=end, kind=kind)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "transactions": [t.to_json() for t in items],
        "totals": transaction_service.compute_totals(items),
    }


@router.post("", status_code=201)
async def create_transaction(req: TransactionCreateRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        item = await transaction_service.create_transaction(storage, **req.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return item.to_json()


@router.put("/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    req: TransactionUpdateRequest,
    storage: StorageAdapter = Depends(get_storage),
):
    try:
        item = await transaction_service.update_transaction(storage, transaction_id, **req.model_dump())
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return item.to_json()


@router.delete("/{transaction_id}")
async def delete_transaction(transaction_id: str, storage: StorageAdapter = Depends(get_storage)):
    try:
        await transaction_service.delete_transaction(storage, transaction_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "deleted"}
