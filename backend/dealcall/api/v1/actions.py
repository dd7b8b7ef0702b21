from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dealcall.core.database import get_db
from dealcall.core.errors import NotFoundError, PersistenceError, ValidationError
from dealcall.services import actions as action_service
from dealcall.services.db_service import DBService

router = APIRouter()


class ActionCreate(BaseModel):
    action_type: str = Field("call", alias="actionType")
    scheduled_for: datetime = Field(..., alias="scheduledFor")
    title: str = Field(..., min_length=1)
    description: Optional[str] = None


def _serialize_action(action) -> dict:
    return {
        "id": str(action.id),
        "sellerCompanyId": str(action.seller_company_id),
        "actionType": action.action_type,
        "scheduledFor": action.scheduled_for.isoformat(),
        "status": action.status,
        "title": action.title,
        "description": action.description,
    }


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.post("/companies/{company_id}/actions")
async def create_action(company_id: str, payload: ActionCreate, db: AsyncSession = Depends(get_db)):
    """Schedule a follow-up call or email"""
    try:
        action = await action_service.create_action(
            db,
            company_id,
            payload.action_type,
            _naive_utc(payload.scheduled_for),
            payload.title,
            payload.description,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "action": _serialize_action(action)}


@router.post("/actions/{action_id}/complete")
async def complete_action(action_id: str, db: AsyncSession = Depends(get_db)):
    """Mark an action as completed"""
    try:
        action = await action_service.complete_action(db, action_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "action": _serialize_action(action)}


@router.get("/companies/{company_id}/actions")
async def get_company_actions(company_id: str, db: AsyncSession = Depends(get_db)):
    """Pending actions for a company, split into current and upcoming"""
    separated = await action_service.get_company_actions_separated(db, company_id)
    return {
        "company_id": company_id,
        "current": [_serialize_action(a) for a in separated["current"]],
        "upcoming": [_serialize_action(a) for a in separated["upcoming"]],
    }


@router.get("/actions")
async def get_pending_actions(db: AsyncSession = Depends(get_db)):
    """All pending actions, bucketed into overdue / current / upcoming"""
    actions = await DBService(db).get_pending_actions()
    buckets = action_service.bucket_actions(actions)
    return {key: [_serialize_action(a) for a in items] for key, items in buckets.items()}
