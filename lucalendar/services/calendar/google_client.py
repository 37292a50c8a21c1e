"""
Google Calendar Client.

Handles communication with the Google Calendar v3 API via the Nango proxy.
Nango holds the OAuth tokens and refreshes them; this client only maps
HTTP failures onto the pipeline's error taxonomy.
"""

from datetime import date, datetime
from typing import Optional, List
from zoneinfo import ZoneInfo
import logging

import httpx

from lucalendar.config import get_settings
from lucalendar.core.errors import AuthExpiredError, BackendError, NotFoundError
from lucalendar.schemas.calendar import EventSummary

settings = get_settings()
logger = logging.getLogger(__name__)

UNTITLED = "(Senza titolo)"


class GoogleCalendarClient:
    """Client for Google Calendar operations via Nango proxy"""

    def __init__(
        self,
        connection_id: Optional[str] = None,
        calendar_id: Optional[str] = None,
    ):
        self.nango_url = settings.nango_url.rstrip("/")
        self.nango_secret = settings.nango_secret_key
        self.provider_config_key = settings.calendar_provider_config_key
        self.connection_id = connection_id or settings.nango_connection_id
        self.calendar_id = calendar_id or settings.calendar_id
        self.timeout = settings.calendar_timeout_seconds

    # ========== Public API ==========

    async def list_events(
        self,
        time_min: datetime,
        time_max: datetime,
        query: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> List[dict]:
        """List events in a time range, expanded and ordered by start time"""
        params = {
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": max_results or 100,
        }
        if query:
            params["q"] = query

        result = await self._request("GET", self._events_url(), params=params)
        return result.get("items", [])

    async def get_event(self, event_id: str) -> dict:
        """Get a single event"""
        return await self._request("GET", self._events_url(event_id))

    async def insert_event(self, event: dict) -> dict:
        """Create a calendar event"""
        return await self._request("POST", self._events_url(), json=event)

    async def update_event(self, event_id: str, event: dict) -> dict:
        """Replace an existing event (full resource)"""
        return await self._request("PUT", self._events_url(event_id), json=event)

    async def delete_event(self, event_id: str) -> None:
        """Delete an event"""
        await self._request("DELETE", self._events_url(event_id))

    # ========== Helpers ==========

    def _events_url(self, event_id: Optional[str] = None) -> str:
        url = f"{self.nango_url}/proxy/calendar/v3/calendars/{self.calendar_id}/events"
        return f"{url}/{event_id}" if event_id else url

    def _get_nango_headers(self) -> dict:
        """Get headers for Nango proxy request"""
        return {
            "Authorization": f"Bearer {self.nango_secret}",
            "Connection-Id": self.connection_id,
            "Provider-Config-Key": self.provider_config_key,
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> dict:
        """Send one request; no retries. Returns the decoded body ({} when empty)."""
        headers = self._get_nango_headers()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, params=params, json=json, headers=headers)
                response.raise_for_status()
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()
        except httpx.HTTPStatusError as e:
            raise self._map_status_error(e) from e
        except httpx.HTTPError as e:
            logger.error(f"Calendar request {method} {url} failed: {e}")
            raise BackendError(f"Calendar service unreachable: {e}") from e

    def _map_status_error(self, error: httpx.HTTPStatusError) -> Exception:
        status = error.response.status_code
        message = _upstream_message(error.response)
        logger.warning(f"Calendar API returned {status}: {message}")

        if status in (401, 403):
            return AuthExpiredError(f"Calendar authorization expired or revoked: {message}")
        if status == 404:
            return NotFoundError(f"Event not found: {message}")
        return BackendError(message, status_code=status)


def _upstream_message(response: httpx.Response) -> str:
    """Extract Google's error message, falling back to the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str):
            return error
    return response.text or f"HTTP {response.status_code}"


# ========== Conversion ==========


def google_event_to_summary(event: dict, tz_name: Optional[str] = None) -> EventSummary:
    """Convert Google Calendar event to EventSummary"""
    tz = ZoneInfo(tz_name or settings.timezone)

    start = event.get("start", {})
    end = event.get("end", {})
    all_day = "dateTime" not in start and "date" in start

    starts_at = _parse_event_time(start, tz)
    ends_at = _parse_event_time(end, tz) if end else starts_at

    attendees = [att.get("email", "") for att in event.get("attendees", []) if att.get("email")]

    return EventSummary(
        id=event["id"],
        title=event.get("summary") or UNTITLED,
        description=event.get("description"),
        starts_at=starts_at,
        ends_at=ends_at,
        all_day=all_day,
        attendees=attendees,
        html_link=event.get("htmlLink"),
    )


def _parse_event_time(value: dict, tz: ZoneInfo) -> datetime:
    """dateTime -> aware datetime in tz; all-day date -> local midnight."""
    if value.get("dateTime"):
        parsed = datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=ZoneInfo(value.get("timeZone") or tz.key))
        return parsed.astimezone(tz)

    if value.get("date"):
        day = date.fromisoformat(value["date"])
        return datetime(day.year, day.month, day.day, tzinfo=tz)

    raise ValueError(f"Event time without dateTime or date: {value}")
