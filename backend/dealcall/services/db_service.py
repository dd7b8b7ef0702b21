from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from dealcall.models import Banker, SellerCompany, Call, Message, Action
from typing import Optional, List, Union
from datetime import datetime
import uuid

IdLike = Union[str, uuid.UUID]


def _as_uuid(value: IdLike) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class DBService:
    """
    Service for database operations
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== BANKERS ====================

    async def get_banker(self, banker_id: IdLike) -> Optional[Banker]:
        """Get banker by ID"""
        b_uuid = _as_uuid(banker_id)
        if b_uuid is None:
            return None

        result = await self.session.execute(
            select(Banker).where(Banker.id == b_uuid)
        )
        return result.scalar_one_or_none()

    async def create_banker(self, data: dict) -> Banker:
        """Create new banker"""
        banker = Banker(**data)
        self.session.add(banker)
        await self.session.commit()
        await self.session.refresh(banker)
        return banker

    # ==================== SELLER COMPANIES ====================

    async def get_company(self, company_id: IdLike) -> Optional[SellerCompany]:
        """Get seller company by ID, with its owner banker loaded"""
        c_uuid = _as_uuid(company_id)
        if c_uuid is None:
            return None

        result = await self.session.execute(
            select(SellerCompany)
            .options(selectinload(SellerCompany.owner_banker))
            .where(SellerCompany.id == c_uuid)
        )
        return result.scalar_one_or_none()

    async def create_company(self, data: dict) -> SellerCompany:
        """Create new seller company"""
        company = SellerCompany(**data)
        self.session.add(company)
        await self.session.commit()
        await self.session.refresh(company)
        return company

    # ==================== CALLS ====================

    async def create_call(self, data: dict) -> Call:
        """Create new call record"""
        call = Call(**data)
        self.session.add(call)
        await self.session.commit()
        await self.session.refresh(call)
        return call

    async def get_call(self, call_id: IdLike) -> Optional[Call]:
        """Get call by ID"""
        c_uuid = _as_uuid(call_id)
        if c_uuid is None:
            return None

        result = await self.session.execute(
            select(Call).where(Call.id == c_uuid)
        )
        return result.scalar_one_or_none()

    async def get_call_with_context(self, call_id: IdLike) -> Optional[Call]:
        """Get call with its seller company and banker loaded"""
        c_uuid = _as_uuid(call_id)
        if c_uuid is None:
            return None

        result = await self.session.execute(
            select(Call)
            .options(selectinload(Call.seller_company), selectinload(Call.banker))
            .where(Call.id == c_uuid)
        )
        return result.scalar_one_or_none()

    async def get_call_by_external_id(self, external_call_id: str) -> Optional[Call]:
        """Get call by the voice platform's call ID"""
        result = await self.session.execute(
            select(Call).where(Call.external_call_id == external_call_id)
        )
        return result.scalar_one_or_none()

    async def update_call(self, call_id: IdLike, data: dict) -> Optional[Call]:
        """Update call record"""
        call = await self.get_call(call_id)
        if call:
            for key, value in data.items():
                setattr(call, key, value)
            await self.session.commit()
            await self.session.refresh(call)
        return call

    async def delete_call(self, call_id: IdLike) -> bool:
        """Delete a call and its transcript messages"""
        c_uuid = _as_uuid(call_id)
        if c_uuid is None:
            return False

        await self.session.execute(delete(Message).where(Message.call_id == c_uuid))
        result = await self.session.execute(delete(Call).where(Call.id == c_uuid))
        await self.session.commit()
        return result.rowcount > 0

    async def get_company_calls(
        self,
        company_id: IdLike,
        limit: int = 50
    ) -> List[Call]:
        """Get recent calls for a seller company"""
        c_uuid = _as_uuid(company_id)
        if c_uuid is None:
            return []

        result = await self.session.execute(
            select(Call)
            .options(selectinload(Call.banker))
            .where(Call.seller_company_id == c_uuid)
            .order_by(Call.call_date.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def get_previous_call_summaries(self, company_id: IdLike, limit: int = 5) -> List[str]:
        """Most recent non-empty call summaries for a seller company"""
        c_uuid = _as_uuid(company_id)
        if c_uuid is None:
            return []

        result = await self.session.execute(
            select(Call.summary)
            .where(Call.seller_company_id == c_uuid, Call.summary.is_not(None))
            .order_by(Call.call_date.desc())
            .limit(limit)
        )
        return [summary for summary in result.scalars().all() if summary]

    async def get_unanalyzed_calls(self, company_id: IdLike) -> List[Call]:
        """Calls for a seller company whose analysis has not completed"""
        c_uuid = _as_uuid(company_id)
        if c_uuid is None:
            return []

        result = await self.session.execute(
            select(Call)
            .where(
                Call.seller_company_id == c_uuid,
                Call.analysis_status != "completed",
            )
            .order_by(Call.call_date.desc())
        )
        return result.scalars().all()

    # ==================== MESSAGES ====================

    async def next_message_sequence(self, call_id: uuid.UUID) -> int:
        """Bump the call's message counter in place; the row lock serializes concurrent writers"""
        result = await self.session.execute(
            update(Call)
            .where(Call.id == call_id)
            .values(message_count=Call.message_count + 1)
            .returning(Call.message_count)
            .execution_options(synchronize_session=False)
        )
        return int(result.scalar_one())

    async def create_message(self, data: dict) -> Message:
        """Create a transcript message, assigning the next per-call sequence"""
        data = dict(data)
        data["sequence"] = await self.next_message_sequence(data["call_id"])
        message = Message(**data)
        self.session.add(message)
        await self.session.commit()
        await self.session.refresh(message)
        return message

    async def get_call_messages(self, call_id: IdLike) -> List[Message]:
        """Get a call's transcript in conversational order"""
        c_uuid = _as_uuid(call_id)
        if c_uuid is None:
            return []

        result = await self.session.execute(
            select(Message)
            .where(Message.call_id == c_uuid)
            .order_by(Message.timestamp.asc(), Message.sequence.asc())
        )
        return result.scalars().all()

    # ==================== ACTIONS ====================

    async def create_action(self, data: dict) -> Action:
        """Create new follow-up action"""
        action = Action(**data)
        self.session.add(action)
        await self.session.commit()
        await self.session.refresh(action)
        return action

    async def get_action(self, action_id: IdLike) -> Optional[Action]:
        """Get action by ID"""
        a_uuid = _as_uuid(action_id)
        if a_uuid is None:
            return None

        result = await self.session.execute(
            select(Action).where(Action.id == a_uuid)
        )
        return result.scalar_one_or_none()

    async def update_action(self, action_id: IdLike, data: dict) -> Optional[Action]:
        """Update action"""
        action = await self.get_action(action_id)
        if action:
            for key, value in data.items():
                setattr(action, key, value)
            await self.session.commit()
            await self.session.refresh(action)
        return action

    async def get_pending_actions(
        self,
        company_id: Optional[IdLike] = None,
        scheduled_before: Optional[datetime] = None,
    ) -> List[Action]:
        """Pending actions ordered by schedule, optionally for one company and up to a cutoff"""
        query = select(Action).where(Action.status == "pending")
        if company_id is not None:
            c_uuid = _as_uuid(company_id)
            if c_uuid is None:
                return []
            query = query.where(Action.seller_company_id == c_uuid)
        if scheduled_before is not None:
            query = query.where(Action.scheduled_for <= scheduled_before)
        query = query.order_by(Action.scheduled_for.asc())

        result = await self.session.execute(query)
        return result.scalars().all()
