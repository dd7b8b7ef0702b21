"""Calendar request/response models"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class AvailableSlotsRequest(BaseModel):
    """Window to search for free slots"""

    start_date: datetime = Field(..., alias="startDate")
    end_date: datetime = Field(..., alias="endDate")
    timezone: Optional[str] = None          # e.g. "America/New_York", defaults to UTC
    duration: int = Field(30, gt=0, le=480)  # minutes

    class Config:
        populate_by_name = True


class TimeSlot(BaseModel):
    start: str                      # ISO 8601, UTC
    end: str
    date: Optional[str] = None      # "Monday, Jan 15"


class BookMeetingRequest(BaseModel):
    """A meeting to create on the banker's calendar"""

    attendee_email: str = Field(..., alias="attendeeEmail", pattern=EMAIL_PATTERN)
    attendee_name: str = Field(..., alias="attendeeName", min_length=1)
    slot_start: datetime = Field(..., alias="slotStart")
    slot_end: datetime = Field(..., alias="slotEnd")
    company_id: Optional[str] = Field(None, alias="companyId")
    company_name: str = Field(..., alias="companyName", min_length=1)
    notes: Optional[str] = None
    timezone: Optional[str] = None

    class Config:
        populate_by_name = True

    def to_event_args(self, request_id: str) -> dict:
        """Arguments for the broker's create_event tool"""
        tz = self.timezone or "UTC"
        return {
            "calendarId": "primary",
            "summary": f"Meeting with {self.company_name}",
            "description": self.notes or f"Meeting with {self.attendee_name} from {self.company_name}",
            "start": {"dateTime": self.slot_start.isoformat(), "timeZone": tz},
            "end": {"dateTime": self.slot_end.isoformat(), "timeZone": tz},
            "attendees": [
                {"email": self.attendee_email, "displayName": self.attendee_name},
            ],
            "conferenceData": {
                "createRequest": {
                    "requestId": request_id,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                },
            },
            "conferenceDataVersion": 1,
        }


class BusyPeriod(BaseModel):
    start: datetime
    end: datetime
