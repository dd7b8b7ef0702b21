"""
Meeting scheduling on the banker's calendar.

Free slots are computed locally from the broker's busy periods; bookings
go out as create_event with a Google Meet conference request.
"""

import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError as PydanticValidationError

from dealcall.core.errors import DealCallError
from dealcall.integrations.calendar.broker import (
    MetorialCalendarBroker,
    calendar_broker,
    parse_busy_periods,
    result_object,
)
from dealcall.integrations.calendar.models import (
    AvailableSlotsRequest,
    BookMeetingRequest,
    BusyPeriod,
    TimeSlot,
)

logger = logging.getLogger(__name__)

BUSINESS_START_HOUR = 9
BUSINESS_END_HOUR = 17
UPCOMING_WINDOW_DAYS = 30


def _utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _iso_z(value: datetime) -> str:
    return _utc(value).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def _zone(name: Optional[str]):
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, using UTC")
        return timezone.utc


def _error_message(error: Exception) -> str:
    return str(error) or "Unknown error"


def calculate_free_slots(
    start: datetime,
    end: datetime,
    busy: Sequence[BusyPeriod],
    duration_minutes: int = 30,
    tz: Optional[str] = None,
) -> List[TimeSlot]:
    """
    Free slots of `duration_minutes` between `start` and `end`

    Candidates begin at the first half-hour mark at or after `start` and
    advance by the slot duration. A slot is kept when it lies on a weekday
    between 09:00 and 17:00 in `tz`, ends by `end` and touches no busy period.
    """
    zone = _zone(tz)
    window_end = _utc(end)
    step = timedelta(minutes=duration_minutes)

    periods = sorted(
        ((_utc(p.start), _utc(p.end)) for p in busy),
        key=lambda period: period[0],
    )

    current = _utc(start).replace(second=0, microsecond=0)
    rounded = math.ceil(current.minute / 30) * 30
    current = current.replace(minute=0) + timedelta(minutes=rounded)

    slots: List[TimeSlot] = []
    while current < window_end:
        slot_end = current + step

        is_busy = any(
            (busy_start <= current < busy_end)
            or (busy_start < slot_end <= busy_end)
            or (current <= busy_start and slot_end >= busy_end)
            for busy_start, busy_end in periods
        )

        local = current.astimezone(zone)
        in_hours = BUSINESS_START_HOUR <= local.hour < BUSINESS_END_HOUR
        is_weekday = local.weekday() < 5

        if not is_busy and in_hours and is_weekday and slot_end <= window_end:
            slots.append(
                TimeSlot(
                    start=_iso_z(current),
                    end=_iso_z(slot_end),
                    date=f"{local.strftime('%A, %b')} {local.day}",
                )
            )

        current = slot_end

    return slots


async def get_available_slots(
    start_date: Any,
    end_date: Any,
    tz: Optional[str] = None,
    duration: int = 30,
    broker: Optional[MetorialCalendarBroker] = None,
) -> Dict[str, Any]:
    """Free slots on the primary calendar between two dates"""
    broker = broker or calendar_broker
    try:
        request = AvailableSlotsRequest(
            startDate=start_date,
            endDate=end_date,
            timezone=tz,
            duration=duration,
        )
        if request.end_date <= request.start_date:
            raise ValueError("endDate must be after startDate")

        free_busy = await broker.call_tool(
            "get_freebusy",
            {
                "calendarIds": ["primary"],
                "timeMin": _iso_z(request.start_date),
                "timeMax": _iso_z(request.end_date),
                "timeZone": request.timezone or "UTC",
            },
        )
        busy = parse_busy_periods(free_busy)
        slots = calculate_free_slots(
            request.start_date,
            request.end_date,
            busy,
            request.duration,
            request.timezone,
        )
        return {"success": True, "slots": [slot.model_dump() for slot in slots]}

    except (DealCallError, PydanticValidationError, ValueError) as e:
        logger.error(f"Failed to load available slots: {e}")
        return {"success": False, "slots": [], "error": _error_message(e)}


async def book_meeting(
    data: Dict[str, Any],
    broker: Optional[MetorialCalendarBroker] = None,
) -> Dict[str, Any]:
    """Create a calendar event with a Meet link for the attendee"""
    broker = broker or calendar_broker
    try:
        request = BookMeetingRequest(**data)
        if request.slot_end <= request.slot_start:
            raise ValueError("slotEnd must be after slotStart")

        event = await broker.call_tool(
            "create_event",
            request.to_event_args(f"meet_{int(time.time() * 1000)}"),
        )
        event = result_object(event)

        entry_points = (event.get("conferenceData") or {}).get("entryPoints") or []
        meet_link = event.get("hangoutLink") or (entry_points[0].get("uri") if entry_points else None)

        logger.info(
            "Meeting booked",
            extra={"event_id": event.get("id"), "company_id": request.company_id},
        )
        return {"success": True, "eventId": event.get("id") or "", "meetLink": meet_link}

    except (DealCallError, PydanticValidationError, ValueError) as e:
        logger.error(f"Failed to book meeting: {e}")
        return {"success": False, "eventId": "", "error": _error_message(e)}


async def list_upcoming_meetings(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    broker: Optional[MetorialCalendarBroker] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Events on the primary calendar, the next 30 days by default"""
    broker = broker or calendar_broker
    now = now or datetime.now(timezone.utc)
    time_min = start_date or now
    time_max = end_date or (now + timedelta(days=UPCOMING_WINDOW_DAYS))

    try:
        events = await broker.call_tool(
            "list_events",
            {
                "calendarId": "primary",
                "timeMin": _iso_z(time_min),
                "timeMax": _iso_z(time_max),
                "maxResults": 100,
                "singleEvents": True,
                "orderBy": "startTime",
            },
        )
        return {"success": True, "meetings": result_object(events).get("items") or []}

    except (DealCallError, ValueError) as e:
        logger.error(f"Failed to list meetings: {e}")
        return {"success": False, "meetings": [], "error": _error_message(e)}
