"""FastAPI dependencies."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from lucalendar.config import get_settings
from lucalendar.services.calendar import (
    CalendarExecutorService,
    EventResolver,
    GoogleCalendarClient,
    InMemoryEventReferenceStore,
)
from lucalendar.services.calendar.context_store import DEFAULT_SESSION, EventReferenceStore
from lucalendar.services.command import CommandService
from lucalendar.services.interpreter import CommandInterpreter

settings = get_settings()


async def get_session_id(
    x_session_id: Annotated[str | None, Header()] = None,
) -> str:
    """Session key for the last-handled-event context."""
    return x_session_id.strip() if x_session_id and x_session_id.strip() else DEFAULT_SESSION


async def get_connection_id(
    x_connection_id: Annotated[str | None, Header()] = None,
) -> str:
    """Nango connection of the calendar to act on."""
    connection_id = x_connection_id or settings.nango_connection_id
    if not connection_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Connection-ID header is required",
        )
    return connection_id


@lru_cache
def get_event_store() -> EventReferenceStore:
    """Process-wide event reference store."""
    return InMemoryEventReferenceStore(ttl_seconds=settings.event_context_ttl_seconds)


@lru_cache
def get_interpreter() -> CommandInterpreter:
    return CommandInterpreter()


async def get_command_service(
    connection_id: Annotated[str, Depends(get_connection_id)],
    store: Annotated[EventReferenceStore, Depends(get_event_store)],
    interpreter: Annotated[CommandInterpreter, Depends(get_interpreter)],
) -> CommandService:
    """Command pipeline bound to the caller's calendar connection."""
    client = GoogleCalendarClient(connection_id=connection_id)
    resolver = EventResolver(client, store)
    return CommandService(interpreter, CalendarExecutorService(client, resolver))


# Type aliases for dependency injection
SessionId = Annotated[str, Depends(get_session_id)]
Interpreter = Annotated[CommandInterpreter, Depends(get_interpreter)]
CommandServiceDep = Annotated[CommandService, Depends(get_command_service)]
