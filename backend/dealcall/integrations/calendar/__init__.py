"""Calendar access through the Metorial MCP broker"""

from .broker import MetorialCalendarBroker, parse_busy_periods
from .models import AvailableSlotsRequest, BookMeetingRequest, TimeSlot

__all__ = [
    "MetorialCalendarBroker",
    "parse_busy_periods",
    "AvailableSlotsRequest",
    "BookMeetingRequest",
    "TimeSlot",
]
