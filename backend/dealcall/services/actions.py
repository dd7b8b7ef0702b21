"""Follow-up actions (calls / emails) scheduled against seller companies."""

from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dealcall.core.errors import NotFoundError, PersistenceError, ValidationError
from dealcall.models import Action
from dealcall.services.db_service import DBService

logger = logging.getLogger(__name__)


class ActionType(str, enum.Enum):
    call = "call"
    email = "email"


class ActionStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"


async def create_action(
    session: AsyncSession,
    seller_company_id: str,
    action_type: str,
    scheduled_for: datetime,
    title: str,
    description: Optional[str] = None,
) -> Action:
    try:
        action_type = ActionType(action_type).value
    except ValueError as e:
        raise ValidationError(f"Unsupported action type: {action_type}") from e
    if not title or not title.strip():
        raise ValidationError("Action title is required")

    db_service = DBService(session)
    company = await db_service.get_company(seller_company_id)
    if not company:
        raise NotFoundError(f"Seller company {seller_company_id} not found")

    try:
        action = await db_service.create_action(
            {
                "seller_company_id": company.id,
                "action_type": action_type,
                "scheduled_for": scheduled_for,
                "title": title.strip(),
                "description": description,
                "status": ActionStatus.pending.value,
            }
        )
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError(f"Failed to create action: {e}") from e

    logger.info("Created action", extra={"action_id": str(action.id), "company_id": str(company.id)})
    return action


async def complete_action(session: AsyncSession, action_id: str) -> Action:
    """Move an action from pending to completed; completed actions stay as they are."""
    db_service = DBService(session)
    action = await db_service.get_action(action_id)
    if not action:
        raise NotFoundError(f"Action {action_id} not found")
    if action.status == ActionStatus.completed.value:
        return action

    try:
        action = await db_service.update_action(action.id, {"status": ActionStatus.completed.value})
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError(f"Failed to complete action: {e}") from e

    logger.info("Completed action", extra={"action_id": str(action_id)})
    return action


async def get_company_actions(
    session: AsyncSession,
    seller_company_id: str,
    include_future: bool = False,
    now: Optional[datetime] = None,
) -> List[Action]:
    """Pending actions for a company; only current/overdue ones unless include_future."""
    now = now or datetime.utcnow()
    return await DBService(session).get_pending_actions(
        seller_company_id,
        scheduled_before=None if include_future else now,
    )


async def get_company_actions_separated(
    session: AsyncSession,
    seller_company_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, List[Action]]:
    now = now or datetime.utcnow()
    actions = await DBService(session).get_pending_actions(seller_company_id)
    return {
        "current": [a for a in actions if a.scheduled_for <= now],
        "upcoming": [a for a in actions if a.scheduled_for > now],
    }


def bucket_actions(actions: Iterable[Action], now: Optional[datetime] = None) -> Dict[str, List[Action]]:
    """Split pending actions into overdue (before today), current (today, up to now) and upcoming."""
    now = now or datetime.utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    buckets: Dict[str, List[Action]] = {"overdue": [], "current": [], "upcoming": []}
    for action in sorted(actions, key=lambda a: a.scheduled_for):
        if action.scheduled_for > now:
            buckets["upcoming"].append(action)
        elif action.scheduled_for < start_of_day:
            buckets["overdue"].append(action)
        else:
            buckets["current"].append(action)
    return buckets
