"""
Event Reference Resolver.

Finds the event an update/delete command refers to:
1. No title: the session's last handled event (if still fresh)
2. Title: a single exact title match, else score candidates in a window
   around now (title variants weighted by length, recency bonus) and take
   the best above the acceptance threshold. Several exact matches are
   ambiguous and never guessed
3. Last resort for "la riunione": the single meeting scheduled today
"""

from datetime import datetime, timedelta
from typing import Callable, Optional, List
import logging
import re

from lucalendar.config import get_settings
from lucalendar.core.dates import is_today, local_now
from lucalendar.core.errors import NotFoundError
from lucalendar.schemas.calendar import EventSummary
from lucalendar.services.calendar.context_store import EventReferenceStore
from lucalendar.services.calendar.google_client import GoogleCalendarClient, google_event_to_summary

settings = get_settings()
logger = logging.getLogger(__name__)

EXACT_MATCH_SCORE = 100.0
VARIANT_SCORE = 50.0
RECENCY_BONUS = 10.0
RECENCY_WINDOW_DAYS = 3.0

# Never used alone as a search variant
GENERIC_NOUNS = {"riunione", "appuntamento", "evento", "incontro", "meeting", "call"}
STOP_WORDS = {
    "con", "e", "di", "da", "a", "in", "su", "per", "il", "lo", "la", "le", "gli", "i",
    "un", "una", "uno", "del", "della", "al", "alla", "l", "mio", "mia",
}
_TOKEN_RE = re.compile(r"[\w'’.@-]+", re.UNICODE)


class EventResolver:
    """Resolves a title (or nothing) to an event id"""

    def __init__(
        self,
        client: GoogleCalendarClient,
        store: EventReferenceStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.store = store
        self._clock = clock or (lambda: local_now(settings.timezone))
        self.min_score = settings.resolver_min_score

    async def resolve(self, title: Optional[str], session_id: str) -> str:
        """
        Resolve the target event id.

        Raises:
            NotFoundError: nothing in context, an ambiguous title, or no candidate above threshold
        """
        if not title or not title.strip():
            reference = self.store.get(session_id)
            if reference is None:
                raise NotFoundError("Nessun evento recente a cui fare riferimento")
            logger.info(f"Resolved event from context: {reference.event_id} ({reference.title})")
            return reference.event_id

        now = self._clock()
        candidates = await self._fetch_candidates(now)
        best = find_best_match(title, candidates, now, self.min_score)
        if best is not None:
            return best.id

        fallback = single_meeting_today(title, candidates, now)
        if fallback is not None:
            logger.info(f"Resolved '{title}' to today's only meeting: {fallback.title}")
            return fallback.id

        raise NotFoundError(f"Nessun evento trovato con titolo '{title}'", title=title)

    def remember(self, session_id: str, event_id: str, title: str) -> None:
        self.store.remember(session_id, event_id, title)

    async def _fetch_candidates(self, now: datetime) -> List[EventSummary]:
        raw_events = await self.client.list_events(
            time_min=now - timedelta(days=settings.resolver_days_back),
            time_max=now + timedelta(days=settings.resolver_days_ahead),
            max_results=settings.resolver_max_results,
        )
        return [google_event_to_summary(e, settings.timezone) for e in raw_events]


# ========== Scoring ==========


def search_variants(title: str) -> list[str]:
    """Lower-cased variants of the search title, most specific first, no duplicates."""
    cleaned = " ".join(title.split())
    lowered = cleaned.lower()
    words = lowered.split()

    variants = [lowered, " ".join(w for w in words if w != "con")]

    for word in (words[0], words[-1]) if words else ():
        if _is_meaningful(word):
            variants.append(word)

    # Capitalized tokens are likely names ("Mario", "Rossi")
    for token in _TOKEN_RE.findall(cleaned):
        if token[:1].isupper() and _is_meaningful(token.lower()):
            variants.append(token.lower())

    unique: list[str] = []
    for variant in variants:
        if variant and variant not in unique:
            unique.append(variant)
    return unique


def _is_meaningful(word: str) -> bool:
    return len(word) > 2 and word not in STOP_WORDS and word not in GENERIC_NOUNS


def score_event(title: str, event: EventSummary, now: datetime) -> float:
    """Variant overlap weighted by length ratio, plus a small recency bonus."""
    search = " ".join(title.split()).lower()
    event_title = event.title.lower()

    if event_title == search:
        return EXACT_MATCH_SCORE

    score = 0.0
    for variant in search_variants(title):
        if variant in event_title:
            score += VARIANT_SCORE * min(1.0, len(variant) / len(search))

    days = abs((event.starts_at - now).total_seconds()) / 86400
    if days <= RECENCY_WINDOW_DAYS:
        score += RECENCY_BONUS / (1 + days)

    return score


def find_best_match(
    title: str,
    candidates: List[EventSummary],
    now: datetime,
    min_score: float,
) -> Optional[EventSummary]:
    """
    Highest-scoring candidate at or above min_score; score ties keep the first seen.

    Raises:
        NotFoundError: several events carry exactly the searched title
    """
    search = " ".join(title.split()).lower()
    exact = [e for e in candidates if e.title.lower() == search]
    if len(exact) == 1:
        logger.info(f"Exact title match for '{title}': {exact[0].id}")
        return exact[0]
    if len(exact) > 1:
        logger.info(f"{len(exact)} events titled '{title}', not guessing which one")
        raise NotFoundError(f"Più eventi con titolo '{title}'", title=title)

    best: Optional[EventSummary] = None
    best_score = 0.0

    for event in candidates:
        score = score_event(title, event, now)
        logger.debug(f"Resolver score {score:.1f} for '{event.title}' ({event.id})")
        if score > best_score:
            best, best_score = event, score

    if best is not None and best_score >= min_score:
        logger.info(f"Resolved '{title}' to '{best.title}' (score {best_score:.1f})")
        return best
    return None


def single_meeting_today(
    title: str,
    candidates: List[EventSummary],
    now: datetime,
) -> Optional[EventSummary]:
    """The only "riunione" today, when the search is a bare "riunione" without a name."""
    lowered = title.lower()
    if "riunione" not in lowered or "con" in lowered.split():
        return None

    meetings = [
        e for e in candidates
        if "riunione" in e.title.lower() and is_today(e.starts_at, now)
    ]

    if len(meetings) == 1:
        return meetings[0]
    if len(meetings) > 1:
        logger.info(f"{len(meetings)} meetings today, not guessing which one '{title}' means")
    return None
