from datetime import datetime, timedelta, timezone

import pytest

from dealcall.api.v1.meetings import get_calendar_broker
from dealcall.core.errors import ExternalApiError
from dealcall.integrations.calendar.broker import parse_busy_periods
from dealcall.integrations.calendar.models import BusyPeriod
from dealcall.main import app
from dealcall.services import meetings

UTC = timezone.utc

FREEBUSY_TEXT = {
    "content": [
        {
            "type": "text",
            "text": (
                "Free/busy for primary:\n"
                "  Busy:\n"
                "    2025-11-03T09:30:00Z - 2025-11-03T10:00:00Z\n"
                "    2025-11-03T13:00:00Z-2025-11-03T14:00:00Z\n"
            ),
        }
    ]
}


class FakeBroker:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def call_tool(self, name, arguments):
        self.calls.append((name, arguments))
        if self.error is not None:
            raise self.error
        return self.result


def test_parse_busy_periods_from_text():
    periods = parse_busy_periods(FREEBUSY_TEXT)

    assert [(p.start, p.end) for p in periods] == [
        (datetime(2025, 11, 3, 9, 30, tzinfo=UTC), datetime(2025, 11, 3, 10, 0, tzinfo=UTC)),
        (datetime(2025, 11, 3, 13, 0, tzinfo=UTC), datetime(2025, 11, 3, 14, 0, tzinfo=UTC)),
    ]


def test_parse_busy_periods_from_google_shape():
    result = {
        "calendars": {
            "primary": {"busy": [{"start": "2025-11-04T11:00:00Z", "end": "2025-11-04T12:00:00Z"}]}
        }
    }
    assert len(parse_busy_periods(result)) == 1
    assert parse_busy_periods({}) == []
    assert parse_busy_periods(None) == []


def test_free_slots_skip_busy_and_off_hours():
    busy = [BusyPeriod(start="2025-11-03T09:30:00Z", end="2025-11-03T10:00:00Z")]

    slots = meetings.calculate_free_slots(
        datetime(2025, 11, 3, 8, 10, tzinfo=UTC),
        datetime(2025, 11, 3, 11, 0, tzinfo=UTC),
        busy,
        30,
    )

    assert [s.start for s in slots] == [
        "2025-11-03T09:00:00.000Z",
        "2025-11-03T10:00:00.000Z",
        "2025-11-03T10:30:00.000Z",
    ]
    assert slots[0].end == "2025-11-03T09:30:00.000Z"
    assert slots[0].date == "Monday, Nov 3"


def test_free_slots_on_weekend_are_empty():
    saturday = datetime(2025, 11, 8, 9, 0, tzinfo=UTC)
    assert meetings.calculate_free_slots(saturday, saturday + timedelta(hours=8), [], 30) == []


def test_free_slots_use_requested_timezone():
    # 13:00Z is 08:00 in New York on this date
    slots = meetings.calculate_free_slots(
        datetime(2025, 11, 3, 13, 0, tzinfo=UTC),
        datetime(2025, 11, 3, 15, 0, tzinfo=UTC),
        [],
        30,
        "America/New_York",
    )

    assert [s.start for s in slots] == ["2025-11-03T14:00:00.000Z", "2025-11-03T14:30:00.000Z"]


def test_free_slots_never_overlap_a_covering_busy_period():
    busy = [BusyPeriod(start="2025-11-03T10:10:00Z", end="2025-11-03T10:20:00Z")]

    slots = meetings.calculate_free_slots(
        datetime(2025, 11, 3, 10, 0, tzinfo=UTC),
        datetime(2025, 11, 3, 11, 0, tzinfo=UTC),
        busy,
        30,
    )

    assert [s.start for s in slots] == ["2025-11-03T10:30:00.000Z"]


@pytest.mark.asyncio
async def test_get_available_slots():
    broker = FakeBroker(result=FREEBUSY_TEXT)

    result = await meetings.get_available_slots(
        "2025-11-03T09:00:00Z", "2025-11-03T11:00:00Z", broker=broker
    )

    assert result["success"] is True
    assert [s["start"] for s in result["slots"]] == [
        "2025-11-03T09:00:00.000Z",
        "2025-11-03T10:00:00.000Z",
        "2025-11-03T10:30:00.000Z",
    ]
    name, args = broker.calls[0]
    assert name == "get_freebusy"
    assert args["calendarIds"] == ["primary"]
    assert args["timeZone"] == "UTC"


@pytest.mark.asyncio
async def test_get_available_slots_reports_broker_errors():
    broker = FakeBroker(error=ExternalApiError("No calendar connection found. Please connect your calendar first."))

    result = await meetings.get_available_slots("2025-11-03T09:00:00Z", "2025-11-04T09:00:00Z", broker=broker)

    assert result == {
        "success": False,
        "slots": [],
        "error": "No calendar connection found. Please connect your calendar first.",
    }


@pytest.mark.asyncio
async def test_get_available_slots_rejects_inverted_window():
    broker = FakeBroker(result=FREEBUSY_TEXT)

    result = await meetings.get_available_slots("2025-11-04T09:00:00Z", "2025-11-03T09:00:00Z", broker=broker)

    assert result["success"] is False
    assert broker.calls == []


@pytest.mark.asyncio
async def test_book_meeting():
    broker = FakeBroker(result={"id": "evt_1", "hangoutLink": "https://meet.google.com/abc-defg-hij"})

    result = await meetings.book_meeting(
        {
            "attendeeEmail": "ceo@nordlicht.example",
            "attendeeName": "Jana Weber",
            "slotStart": "2025-11-04T10:00:00Z",
            "slotEnd": "2025-11-04T10:30:00Z",
            "companyName": "Nordlicht Logistics",
        },
        broker=broker,
    )

    assert result == {"success": True, "eventId": "evt_1", "meetLink": "https://meet.google.com/abc-defg-hij"}
    name, args = broker.calls[0]
    assert name == "create_event"
    assert args["summary"] == "Meeting with Nordlicht Logistics"
    assert args["description"] == "Meeting with Jana Weber from Nordlicht Logistics"
    assert args["attendees"] == [{"email": "ceo@nordlicht.example", "displayName": "Jana Weber"}]
    assert args["conferenceData"]["createRequest"]["conferenceSolutionKey"] == {"type": "hangoutsMeet"}
    assert args["conferenceData"]["createRequest"]["requestId"].startswith("meet_")


@pytest.mark.asyncio
async def test_book_meeting_uses_conference_entry_point():
    broker = FakeBroker(
        result={"id": "evt_2", "conferenceData": {"entryPoints": [{"uri": "https://meet.google.com/xyz"}]}}
    )

    result = await meetings.book_meeting(
        {
            "attendeeEmail": "cfo@nordlicht.example",
            "attendeeName": "Tom",
            "slotStart": "2025-11-04T10:00:00Z",
            "slotEnd": "2025-11-04T10:30:00Z",
            "companyName": "Nordlicht Logistics",
        },
        broker=broker,
    )

    assert result["meetLink"] == "https://meet.google.com/xyz"


@pytest.mark.asyncio
async def test_book_meeting_rejects_bad_email():
    broker = FakeBroker(result={"id": "evt_1"})

    result = await meetings.book_meeting(
        {
            "attendeeEmail": "not-an-email",
            "attendeeName": "Jana",
            "slotStart": "2025-11-04T10:00:00Z",
            "slotEnd": "2025-11-04T10:30:00Z",
            "companyName": "Nordlicht Logistics",
        },
        broker=broker,
    )

    assert result["success"] is False
    assert result["eventId"] == ""
    assert broker.calls == []


@pytest.mark.asyncio
async def test_list_upcoming_meetings_defaults_to_thirty_days():
    broker = FakeBroker(result={"items": [{"id": "evt_1"}]})
    now = datetime(2025, 11, 3, 12, 0, tzinfo=UTC)

    result = await meetings.list_upcoming_meetings(broker=broker, now=now)

    assert result == {"success": True, "meetings": [{"id": "evt_1"}]}
    name, args = broker.calls[0]
    assert name == "list_events"
    assert args["timeMin"] == "2025-11-03T12:00:00.000Z"
    assert args["timeMax"] == "2025-12-03T12:00:00.000Z"
    assert args["singleEvents"] is True


@pytest.mark.asyncio
async def test_meetings_api(client):
    broker = FakeBroker(result=FREEBUSY_TEXT)
    app.dependency_overrides[get_calendar_broker] = lambda: broker

    resp = await client.post(
        "/api/meetings/available-slots",
        json={"startDate": "2025-11-03T09:00:00Z", "endDate": "2025-11-03T10:00:00Z"},
    )

    assert resp.status_code == 200
    assert [s["start"] for s in resp.json()["slots"]] == ["2025-11-03T09:00:00.000Z"]

    broker.error = ExternalApiError("No calendar connection found. Please connect your calendar first.")
    resp = await client.get("/api/meetings/upcoming")
    assert resp.status_code == 502
