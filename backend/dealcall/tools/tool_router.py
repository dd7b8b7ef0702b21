from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from dealcall.core.errors import NotFoundError, ValidationError
from dealcall.services.db_service import DBService
from dealcall.tools.tool_definitions import TOOL_NAMES

logger = logging.getLogger(__name__)

SLOT_MINUTES = 30
CANDIDATE_HOURS = (10, 14)


@dataclass
class CompanySnapshot:
    id: str
    name: str
    industry: str
    revenue: float
    ebitda: float
    headcount: int
    geography: str
    deal_stage: str
    owner_banker_name: str
    owner_banker_id: str
    estimated_deal_size: float
    likelihood_to_sell: int


@dataclass
class ToolContext:
    call_id: str
    company: CompanySnapshot

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SimpleToolArgs(BaseModel):
    """Every meeting tool takes a single natural-language ``input``."""

    input: str = Field(..., min_length=1)

    class Config:
        extra = "ignore"


def parse_tool_arguments(arguments: Any) -> Dict[str, Any]:
    """Parse Vapi tool-call arguments which may be a dict or JSON string."""
    if isinstance(arguments, dict):
        return arguments
    if isinstance(arguments, str):
        try:
            parsed = json.loads(arguments)
        except json.JSONDecodeError:
            return {"_raw": arguments}
        return parsed if isinstance(parsed, dict) else {"_raw": parsed}
    return {}


def tool_call_name(tool_call: Dict[str, Any]) -> Optional[str]:
    function = tool_call.get("function") or {}
    return function.get("name") or tool_call.get("name")


def tool_call_arguments(tool_call: Dict[str, Any]) -> Any:
    function = tool_call.get("function") or {}
    if "arguments" in function:
        return function.get("arguments")
    return tool_call.get("arguments")


def _candidate_slots(now: datetime, count: int = 3) -> List[Dict[str, str]]:
    """Fixed business-hour slots on the next weekdays."""
    slots: List[Dict[str, str]] = []
    day = now.date()
    while len(slots) < count:
        day += timedelta(days=1)
        if day.weekday() >= 5:
            continue
        for hour in CANDIDATE_HOURS:
            start = datetime.combine(day, time(hour=hour))
            end = start + timedelta(minutes=SLOT_MINUTES)
            slots.append(
                {
                    "start": start.isoformat() + "Z",
                    "end": end.isoformat() + "Z",
                    "label": start.strftime("%A %d %b at %I:%M %p UTC"),
                }
            )
            if len(slots) >= count:
                break
    return slots


async def build_tool_context(session: AsyncSession, call_id: str) -> ToolContext:
    """Load Call + SellerCompany + Banker into the context tools run with."""
    call = await DBService(session).get_call_with_context(call_id)
    if not call:
        raise NotFoundError(f"Call {call_id} not found")

    company = call.seller_company
    return ToolContext(
        call_id=str(call.id),
        company=CompanySnapshot(
            id=str(company.id),
            name=company.name,
            industry=company.industry,
            revenue=company.revenue or 0,
            ebitda=company.ebitda or 0,
            headcount=company.headcount or 0,
            geography=company.geography or "",
            deal_stage=company.deal_stage,
            owner_banker_name=call.banker.name,
            owner_banker_id=str(call.banker_id),
            estimated_deal_size=company.estimated_deal_size or 0,
            likelihood_to_sell=company.likelihood_to_sell or 0,
        ),
    )


class ToolRouter:
    """Executes model-requested tool calls inside a live call."""

    async def handle_tool_call(self, tool_call: Dict[str, Any], context: ToolContext) -> Optional[dict[str, Any]]:
        name = tool_call_name(tool_call)
        if name not in TOOL_NAMES:
            logger.warning("Unknown tool call", extra={"tool": name, "call_id": context.call_id})
            return None

        raw_args = parse_tool_arguments(tool_call_arguments(tool_call))
        try:
            args = SimpleToolArgs(**raw_args)
        except PydanticValidationError as e:
            raise ValidationError(f"Tool {name} requires a string 'input' parameter") from e

        logger.info("Handling tool call", extra={"tool": name, "call_id": context.call_id})

        if name == "find_free_meeting_slot":
            return await self._find_free_meeting_slot(args, context)
        return await self._book_meeting_slot(args, context)

    async def _find_free_meeting_slot(self, args: SimpleToolArgs, context: ToolContext) -> dict[str, Any]:
        # Placeholder availability; the calendar broker is only wired into the meetings API
        return {
            "status": "ok",
            "tool": "find_free_meeting_slot",
            "input": args.input,
            "banker": context.company.owner_banker_name,
            "slots": _candidate_slots(datetime.utcnow()),
        }

    async def _book_meeting_slot(self, args: SimpleToolArgs, context: ToolContext) -> dict[str, Any]:
        confirmation_id = f"MTG-{uuid.uuid4().hex[:8].upper()}"
        return {
            "status": "booked",
            "tool": "book_meeting_slot",
            "input": args.input,
            "confirmationId": confirmation_id,
            "company": context.company.name,
            "banker": context.company.owner_banker_name,
        }


def tool_result(tool_call: Dict[str, Any], result: Any) -> Dict[str, Any]:
    """Wrap a tool result in Vapi's expected per-call result envelope."""
    payload: Dict[str, Any] = {
        "name": tool_call_name(tool_call),
        "result": result if isinstance(result, str) else json.dumps(result),
    }
    tool_call_id = tool_call.get("id")
    if tool_call_id:
        payload["toolCallId"] = tool_call_id
    return payload


tool_router = ToolRouter()
