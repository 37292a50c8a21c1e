"""Shared fixtures for calendar service tests."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

ROME = ZoneInfo("Europe/Rome")

# Monday 19 October 2026, 10:30 in Rome
REF = datetime(2026, 10, 19, 10, 30, tzinfo=ROME)


def google_event(
    event_id: str,
    summary: str,
    start: str = "2026-10-19T15:00:00+02:00",
    end: str = "2026-10-19T16:00:00+02:00",
    **extra,
) -> dict:
    """Google Calendar event resource with dateTime start/end."""
    return {
        "id": event_id,
        "summary": summary,
        "start": {"dateTime": start, "timeZone": "Europe/Rome"},
        "end": {"dateTime": end, "timeZone": "Europe/Rome"},
        "htmlLink": f"https://calendar.google.com/event?eid={event_id}",
        **extra,
    }


@pytest.fixture
def calendar_client():
    """GoogleCalendarClient stand-in with async methods."""
    client = MagicMock()
    client.list_events = AsyncMock(return_value=[])
    client.get_event = AsyncMock()
    client.insert_event = AsyncMock()
    client.update_event = AsyncMock(return_value={})
    client.delete_event = AsyncMock(return_value=None)
    return client
