from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from dealcall.integrations.calendar.broker import MetorialCalendarBroker, calendar_broker
from dealcall.integrations.calendar.models import AvailableSlotsRequest, BookMeetingRequest
from dealcall.services import meetings as meeting_service

router = APIRouter()


def get_calendar_broker() -> MetorialCalendarBroker:
    return calendar_broker


@router.post("/available-slots")
async def available_slots(
    payload: AvailableSlotsRequest,
    broker: MetorialCalendarBroker = Depends(get_calendar_broker),
):
    """Free 30-minute weekday slots on the banker's calendar"""
    result = await meeting_service.get_available_slots(
        payload.start_date,
        payload.end_date,
        payload.timezone,
        payload.duration,
        broker=broker,
    )
    if not result["success"]:
        raise HTTPException(status_code=502, detail=result["error"])
    return result


@router.post("/book")
async def book(
    payload: BookMeetingRequest,
    broker: MetorialCalendarBroker = Depends(get_calendar_broker),
):
    """Book a slot with a Google Meet link"""
    data: Dict[str, Any] = payload.model_dump(by_alias=True)
    result = await meeting_service.book_meeting(data, broker=broker)
    if not result["success"]:
        raise HTTPException(status_code=502, detail=result["error"])
    return result


@router.get("/upcoming")
async def upcoming(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    broker: MetorialCalendarBroker = Depends(get_calendar_broker),
):
    result = await meeting_service.list_upcoming_meetings(start_date, end_date, broker=broker)
    if not result["success"]:
        raise HTTPException(status_code=502, detail=result["error"])
    return result
