from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from services import goal_service
from storage.base import StorageAdapter
from storage.factory import get_storage

router = APIRouter(prefix="/goals", tags=["goals"])


class GoalCreateRequest(BaseModel):
    text: str = Field(min_length=1, max_length=300)
    tag: Optional[str] = Field(default=None, max_length=60)


class GoalUpdateRequest(BaseModel):
    text: Optional[str] = Field(default=None, min_length=1, max_length=300)
    tag: Optional[str] = Field(default=None, max_length=60)
    done: Optional[bool] = None


@router.get("")
async def list_goals(status: str = "all", storage: StorageAdapter = Depends(get_storage)):
    try:
        goals = await goal_service.list_goals(storage, status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [g.to_json() for g in goals]


@router.post("", status_code=201)
async def create_goal(req: GoalCreateRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        goal = await goal_service.create_goal(storage, req.text, req.tag)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return goal.to_json()


@router.put("/{goal_id}")
async def update_goal(goal_id: str, req: GoalUpdateRequest, storage: StorageAdapter = Depends(get_storage)):
    try:
        goal = await goal_service.update_goal(storage, goal_id, text=req.text, tag=req.tag, done=req.done)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return goal.to_json()


@router.delete("/{goal_id}")
async def delete_goal(goal_id: str, storage: StorageAdapter = Depends(get_storage)):
    try:
        await goal_service.delete_goal(storage, goal_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "deleted"}
