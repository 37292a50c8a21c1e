"""
Event reference store.

Remembers the last event created or updated per session so follow-up
commands without a title ("spostalo di un'ora") can target it. Entries
expire after a short TTL. Best effort: concurrent writers race and the
last write wins.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol
import logging

from lucalendar.schemas.calendar import EventReference

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "default"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventReferenceStore(Protocol):
    def get(self, session_id: str) -> Optional[EventReference]: ...

    def remember(self, session_id: str, event_id: str, title: str) -> EventReference: ...

    def forget(self, session_id: str) -> None: ...


class InMemoryEventReferenceStore:
    """Process-local store keyed by session id."""

    def __init__(self, ttl_seconds: int = 300, clock: Callable[[], datetime] = _utcnow):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._entries: dict[str, EventReference] = {}

    def get(self, session_id: str) -> Optional[EventReference]:
        """Return the session's reference if it is younger than the TTL."""
        reference = self._entries.get(session_id)
        if reference is None:
            return None

        if self._clock() - reference.timestamp >= self.ttl:
            logger.debug(f"Event reference for session {session_id} expired")
            self._entries.pop(session_id, None)
            return None

        return reference

    def remember(self, session_id: str, event_id: str, title: str) -> EventReference:
        """Store the session's last event and drop every expired entry."""
        now = self._clock()
        self._purge_expired(now)
        reference = EventReference(event_id=event_id, title=title, timestamp=now)
        self._entries[session_id] = reference
        logger.debug(f"Remembered event {event_id} for session {session_id}")
        return reference

    def forget(self, session_id: str) -> None:
        self._entries.pop(session_id, None)

    def _purge_expired(self, now: datetime) -> None:
        expired = [sid for sid, ref in self._entries.items() if now - ref.timestamp >= self.ttl]
        for sid in expired:
            del self._entries[sid]
        if expired:
            logger.debug(f"Purged {len(expired)} expired event references")
