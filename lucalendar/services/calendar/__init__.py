"""
Calendar services package.

Services:
- google_client: Google Calendar API via the Nango proxy
- context_store: Last handled event per session (short TTL)
- resolver_service: Find the event a command refers to
- executor_service: Execute canonical actions (CRUD operations)
"""

from lucalendar.services.calendar.google_client import GoogleCalendarClient
from lucalendar.services.calendar.context_store import EventReferenceStore, InMemoryEventReferenceStore
from lucalendar.services.calendar.resolver_service import EventResolver
from lucalendar.services.calendar.executor_service import CalendarExecutorService

__all__ = [
    "GoogleCalendarClient",
    "EventReferenceStore",
    "InMemoryEventReferenceStore",
    "EventResolver",
    "CalendarExecutorService",
]
