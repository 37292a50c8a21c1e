"""
Calendar Executor Service.

Executes CanonicalActions against Google Calendar:
1. Resolving the target event (id, title or session context)
2. Computing new times from shifts, explicit times or dates
3. Calling the calendar API and turning the outcome into an ActionResult
"""

from datetime import datetime, timedelta
from typing import Callable, Optional, List
import logging
import re

from lucalendar.config import get_settings
from lucalendar.core.dates import (
    combine_date_time,
    format_date_time,
    local_now,
    resolve_date,
    resolve_time,
    resolve_window,
)
from lucalendar.core.errors import AuthExpiredError, BackendError, NotFoundError
from lucalendar.schemas.calendar import (
    ActionParameters,
    ActionResult,
    ActionType,
    AttendeesAction,
    CanonicalAction,
    EventSummary,
    EventView,
    ModificationType,
    ShiftDirection,
)
from lucalendar.services.calendar.context_store import DEFAULT_SESSION
from lucalendar.services.calendar.google_client import GoogleCalendarClient, google_event_to_summary
from lucalendar.services.calendar.resolver_service import EventResolver

settings = get_settings()
logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Nuovo evento"
DEFAULT_VIEW_MAX_RESULTS = 10
BATCH_DELETE_MAX_RESULTS = 250

_WHITESPACE_RE = re.compile(r"\s+")


class CalendarExecutorService:
    """Service to execute canonical calendar actions"""

    def __init__(
        self,
        client: GoogleCalendarClient,
        resolver: EventResolver,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.resolver = resolver
        self._clock = clock or (lambda: local_now(settings.timezone))

    async def execute(
        self,
        action: CanonicalAction,
        session_id: str = DEFAULT_SESSION,
        skip_duplicate_check: bool = False,
    ) -> ActionResult:
        """
        Execute a canonical action.

        Args:
            action: Normalized action descriptor
            session_id: Key of the session's last-handled-event context
            skip_duplicate_check: Create even if a similar event exists

        Returns:
            ActionResult with success status and action-specific data

        Raises:
            AuthExpiredError: calendar credentials must be renewed by the caller
        """
        try:
            if action.action == ActionType.CREATE_EVENT:
                result = await self._create_event(action.parameters, session_id, skip_duplicate_check)
            elif action.action == ActionType.UPDATE_EVENT:
                result = await self._update_event(action.parameters, session_id)
            elif action.action == ActionType.DELETE_EVENT:
                result = await self._delete_event(action.parameters, session_id)
            elif action.action == ActionType.VIEW_EVENTS:
                result = await self._list_events(action.parameters)
            else:
                raise ValueError(f"Unsupported action: {action.action}")

        except AuthExpiredError:
            raise

        except NotFoundError as e:
            logger.info(f"Event not found for {action.action.value}: {e}")
            target = f" '{e.title}'" if e.title else ""
            return ActionResult(
                success=False,
                action=action.action,
                message=f"❌ Evento{target} non trovato. Specifica un titolo più preciso.",
                error="event_not_found",
            )

        except BackendError as e:
            logger.warning(f"Calendar backend error for {action.action.value}: {e}")
            return ActionResult(
                success=False,
                action=action.action,
                message=f"❌ Errore del calendario: {e}",
                error="backend_error",
            )

        except Exception as e:
            logger.error(f"Error executing calendar action: {e}", exc_info=True)
            return ActionResult(
                success=False,
                action=action.action,
                message=f"❌ Errore: {str(e)}",
                error=str(e),
            )

        logger.info(f"Executed {action.action.value}: success={result.success}")
        logger.debug(f"Result: {_sanitize_payload(result.model_dump(mode='json', exclude_none=True))}")
        return result

    # ========== CREATE ==========

    async def _create_event(
        self, params: ActionParameters, session_id: str, skip_duplicate_check: bool
    ) -> ActionResult:
        """Create a new calendar event"""
        now = self._clock()
        title = params.title or DEFAULT_TITLE
        starts_at, ends_at = self._creation_window(params, now)

        if not skip_duplicate_check:
            duplicate = await self._find_duplicate(title, starts_at)
            if duplicate is not None:
                return ActionResult(
                    success=False,
                    action=ActionType.CREATE_EVENT,
                    message=(
                        f"⚠️ Esiste già un evento simile: '{duplicate.title}' "
                        f"{format_date_time(duplicate.starts_at)}. Vuoi crearlo comunque?"
                    ),
                    error="potential_duplicate",
                    potential_duplicate=True,
                    existing_event=format_event_view(duplicate),
                )

        event_data = {
            "summary": title,
            "description": params.description or "",
            "start": _event_time(starts_at),
            "end": _event_time(ends_at),
            "attendees": [{"email": email} for email in attendee_emails(params.attendees or [])],
        }

        created = await self.client.insert_event(event_data)
        event = google_event_to_summary({**event_data, **created}, settings.timezone)
        self.resolver.remember(session_id, event.id, event.title)

        logger.info(f"Created event {event.id} starting {starts_at.isoformat()}")
        return ActionResult(
            success=True,
            action=ActionType.CREATE_EVENT,
            message=f"✅ Evento creato con successo: {event.title} {format_date_time(event.starts_at)}",
            event_id=event.id,
            event_link=event.html_link,
            event=format_event_view(event),
        )

    def _creation_window(self, params: ActionParameters, now: datetime) -> tuple[datetime, datetime]:
        """Start from date + startTime; end from endTime or the default duration."""
        if params.start_time:
            starts_at = combine_date_time(params.date or "oggi", params.start_time, now)
        elif params.date:
            starts_at = combine_date_time(params.date, settings.default_start_time, now)
        else:
            # Neither date nor time: next full hour
            starts_at = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)

        if params.end_time:
            ends_at = resolve_time(params.end_time, starts_at)
            if ends_at <= starts_at:
                ends_at += timedelta(days=1)
        else:
            ends_at = starts_at + timedelta(minutes=settings.default_event_duration_minutes)

        return starts_at, ends_at

    async def _find_duplicate(self, title: str, starts_at: datetime) -> Optional[EventSummary]:
        """An event within the duplicate window whose title contains, or is contained in, title"""
        window = timedelta(minutes=settings.duplicate_window_minutes)
        raw_events = await self.client.list_events(
            time_min=starts_at - window,
            time_max=starts_at + window,
            query=title,
        )

        wanted = title.lower()
        for raw in raw_events:
            event = google_event_to_summary(raw, settings.timezone)
            existing = event.title.lower()
            if wanted in existing or existing in wanted:
                logger.info(f"Potential duplicate of '{title}': {event.id}")
                return event
        return None

    # ========== UPDATE ==========

    async def _update_event(self, params: ActionParameters, session_id: str) -> ActionResult:
        """Update an existing calendar event"""
        event_id = params.event_id or await self.resolver.resolve(params.title, session_id)
        existing = await self.client.get_event(event_id)
        current = google_event_to_summary(existing, settings.timezone)

        update_data = dict(existing)
        changed = False

        new_times = self._updated_times(params, current)
        if new_times is not None:
            starts_at, ends_at = new_times
            if current.all_day and _only_date_changes(params):
                update_data["start"] = {"date": starts_at.date().isoformat()}
                update_data["end"] = {"date": ends_at.date().isoformat()}
            else:
                update_data["start"] = _event_time(starts_at)
                update_data["end"] = _event_time(ends_at)
            changed = True

        if params.new_title:
            update_data["summary"] = params.new_title
            changed = True

        if params.description is not None:
            update_data["description"] = params.description
            changed = True

        # An empty attendee list means "no change", never "remove everyone"
        if params.attendees:
            update_data["attendees"] = self._updated_attendees(existing, params)
            changed = True

        if not changed:
            return ActionResult(
                success=False,
                action=ActionType.UPDATE_EVENT,
                message=f"⚠️ Nessuna modifica indicata per l'evento '{current.title}'.",
                error="no_changes",
                event_id=current.id,
            )

        updated = await self.client.update_event(event_id, update_data)
        event = google_event_to_summary({**update_data, **updated}, settings.timezone)
        self.resolver.remember(session_id, event.id, event.title)

        logger.info(f"Updated event {event.id}")
        return ActionResult(
            success=True,
            action=ActionType.UPDATE_EVENT,
            message=f"✅ Evento aggiornato con successo: {event.title} {format_date_time(event.starts_at)}",
            event_id=event.id,
            event_link=event.html_link,
            event=format_event_view(event),
        )

    def _updated_times(
        self, params: ActionParameters, current: EventSummary
    ) -> Optional[tuple[datetime, datetime]]:
        """
        New (start, end) for the event, or None when times are untouched.

        Precedence: timeModification > hoursToShift > startTime/endTime > date.
        Shifts move start and end together, preserving the duration.
        """
        starts_at, ends_at = current.starts_at, current.ends_at
        duration = ends_at - starts_at
        modification = params.time_modification

        if modification is not None:
            if modification.type == ModificationType.SHIFT:
                delta = timedelta(minutes=modification.signed_minutes())
                return starts_at + delta, ends_at + delta
            new_start = resolve_time(modification.time, starts_at)
            return new_start, new_start + duration

        if params.hours_to_shift:
            hours = params.hours_to_shift
            if params.move_direction is not None:
                hours = abs(hours) if params.move_direction == ShiftDirection.FORWARD else -abs(hours)
            delta = timedelta(hours=hours)
            return starts_at + delta, ends_at + delta

        if params.start_time or params.end_time:
            base = self._target_day(params.date, starts_at)
            new_start = resolve_time(params.start_time, base) if params.start_time else base
            if params.end_time:
                new_end = resolve_time(params.end_time, new_start)
                if new_end <= new_start:
                    new_end += timedelta(days=1)
            else:
                new_end = new_start + duration
            return new_start, new_end

        if params.date:
            target = resolve_date(params.date, self._clock())
            delta = timedelta(days=(target.date() - starts_at.date()).days)
            return starts_at + delta, ends_at + delta

        return None

    def _target_day(self, date_phrase: Optional[str], starts_at: datetime) -> datetime:
        """starts_at moved to the requested day, keeping its time of day."""
        if not date_phrase:
            return starts_at
        target = resolve_date(date_phrase, self._clock())
        return starts_at.replace(year=target.year, month=target.month, day=target.day)

    def _updated_attendees(self, existing: dict, params: ActionParameters) -> List[dict]:
        new_emails = attendee_emails(params.attendees or [])

        if params.attendees_action != AttendeesAction.ADD:
            return [{"email": email} for email in new_emails]

        merged = list(existing.get("attendees", []))
        known = {att.get("email", "").lower() for att in merged}
        for email in new_emails:
            if email not in known:
                merged.append({"email": email})
                known.add(email)
        return merged

    # ========== DELETE ==========

    async def _delete_event(self, params: ActionParameters, session_id: str) -> ActionResult:
        """Delete one event, or every event in a day/week window"""
        if params.delete_all or (params.date and not params.event_id and not params.title):
            return await self._delete_events_in_window(params.date)

        event_id = params.event_id or await self.resolver.resolve(params.title, session_id)
        await self.client.delete_event(event_id)

        reference = self.resolver.store.get(session_id)
        if reference is not None and reference.event_id == event_id:
            self.resolver.store.forget(session_id)

        label = f": {params.title}" if params.title else ""
        logger.info(f"Deleted event {event_id}")
        return ActionResult(
            success=True,
            action=ActionType.DELETE_EVENT,
            message=f"✅ Evento eliminato con successo{label}",
            event_id=event_id,
            deleted_count=1,
        )

    async def _delete_events_in_window(self, date_phrase: Optional[str]) -> ActionResult:
        """Batch delete; continues past individual failures"""
        range_start, range_end = resolve_window(date_phrase or "oggi", self._clock())
        raw_events = await self.client.list_events(
            time_min=range_start,
            time_max=range_end,
            max_results=BATCH_DELETE_MAX_RESULTS,
        )

        if not raw_events:
            return ActionResult(
                success=True,
                action=ActionType.DELETE_EVENT,
                message="🗑️ Nessun evento da eliminare nel periodo specificato",
                deleted_count=0,
            )

        deleted = 0
        for raw in raw_events:
            try:
                await self.client.delete_event(raw["id"])
                deleted += 1
            except (BackendError, NotFoundError) as e:
                logger.warning(f"Failed to delete event {raw.get('id')}: {e}")

        failed = len(raw_events) - deleted
        logger.info(f"Batch delete: {deleted}/{len(raw_events)} events deleted")

        message = f"✅ Eliminati {deleted} eventi"
        if failed:
            message += f" ({failed} non eliminati)"
        return ActionResult(
            success=deleted > 0,
            action=ActionType.DELETE_EVENT,
            message=message,
            deleted_count=deleted,
            error="partial_failure" if failed else None,
        )

    # ========== VIEW ==========

    async def _list_events(self, params: ActionParameters) -> ActionResult:
        """List events in the default window or the requested day/week"""
        now = self._clock()
        if params.date:
            range_start, range_end = resolve_window(params.date, now)
        else:
            range_start, range_end = now, now + timedelta(days=settings.view_default_days)

        raw_events = await self.client.list_events(
            time_min=range_start,
            time_max=range_end,
            query=params.query,
            max_results=params.max_results or DEFAULT_VIEW_MAX_RESULTS,
        )
        events = [format_event_view(google_event_to_summary(e, settings.timezone)) for e in raw_events]

        if not events:
            message = "📅 Nessun evento trovato nel periodo specificato"
        elif len(events) == 1:
            message = "📅 Trovato 1 evento"
        else:
            message = f"📅 Trovati {len(events)} eventi"

        return ActionResult(
            success=True,
            action=ActionType.VIEW_EVENTS,
            message=message,
            events=events,
        )


# ========== Helpers ==========


def attendee_emails(attendees: List[str]) -> List[str]:
    """Names become name@<default domain>; order kept, duplicates dropped."""
    emails: List[str] = []
    for attendee in attendees:
        value = attendee.strip().lower()
        if not value:
            continue
        if "@" not in value:
            local_part = _WHITESPACE_RE.sub("", value)
            value = f"{local_part}@{settings.default_attendee_domain}"
        if value not in emails:
            emails.append(value)
    return emails


def format_event_view(event: EventSummary) -> EventView:
    """Event as returned to the caller"""
    if event.all_day:
        start, end = event.starts_at.date().isoformat(), event.ends_at.date().isoformat()
    else:
        start, end = event.starts_at.isoformat(), event.ends_at.isoformat()

    return EventView(
        id=event.id,
        title=event.title,
        description=event.description or "",
        start=start,
        end=end,
        link=event.html_link,
        attendees=event.attendees,
    )


def _event_time(value: datetime) -> dict:
    return {"dateTime": value.isoformat(), "timeZone": settings.timezone}


def _only_date_changes(params: ActionParameters) -> bool:
    return not (
        params.time_modification or params.hours_to_shift or params.start_time or params.end_time
    )


def _sanitize_payload(payload):
    """Mask attendee emails (keep domain only), at any depth"""
    if isinstance(payload, list):
        return [_sanitize_payload(item) for item in payload]
    if not isinstance(payload, dict):
        return payload

    sanitized = {}
    for key, value in payload.items():
        if key == "attendees" and isinstance(value, list):
            sanitized[key] = [
                email.split("@")[1] if isinstance(email, str) and "@" in email else "***"
                for email in value
            ]
        else:
            sanitized[key] = _sanitize_payload(value)
    return sanitized
