"""
Local, rule-based command interpreter.

Used whenever the LLM is unavailable, too slow, or returns something the
normalizer cannot use. Keyword and regex tables only; produces the same
CanonicalAction shape as the LLM path and never raises.
"""

import logging
import re
from typing import Optional

from lucalendar.core.dates import NUMBER_PATTERN, find_weekday, format_hhmm
from lucalendar.core.time_shift import detect_time_shift
from lucalendar.schemas.calendar import (
    ActionParameters,
    ActionType,
    AttendeesAction,
    CanonicalAction,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Nuovo evento"
DEFAULT_MAX_RESULTS = 10
LAST_RESORT_MAX_RESULTS = 5

DELETE_ALL_PHRASES = ("elimina tutto", "elimina tutti gli eventi", "cancella tutto", "cancella tutti gli eventi")

# Checked in this order; the first group with a keyword in the text wins
ACTION_KEYWORDS: list[tuple[ActionType, tuple[str, ...]]] = [
    (ActionType.CREATE_EVENT, ("crea", "aggiungi", "inserisci", "programma", "organizza", "fissa")),
    (ActionType.UPDATE_EVENT, ("modifica", "aggiorna", "cambia", "sposta", "anticipa", "posticipa")),
    (ActionType.DELETE_EVENT, ("elimina", "cancella", "rimuovi")),
    (ActionType.VIEW_EVENTS, ("mostra", "visualizza", "elenca", "elenco", "quali", "trovami", "vedi")),
]

# Words that end a captured name or title
_DATE_TIME_WORDS = {
    "oggi", "domani", "dopodomani", "alle", "dalle", "prossimo", "prossima",
    "questa", "questo", "tra", "fra", "ore", "lunedì", "lunedi", "martedì", "martedi",
    "mercoledì", "mercoledi", "giovedì", "giovedi", "venerdì", "venerdi", "sabato", "domenica",
}
_NAME_STOP_WORDS = _DATE_TIME_WORDS | {
    "di", "da", "a", "in", "su", "per", "il", "lo", "la", "le", "gli", "i", "nel", "nella",
    "al", "alla", "all'", "del", "della", "che", "poi",
}

_ATTENDEE_ADD_RE = re.compile(
    r"\baggiungi\s+(.+?)\s+(?:alla\s+riunione|all['’]\s*evento|all['’]\s*appuntamento)",
    re.IGNORECASE,
)
_WITH_PERSON_RE = re.compile(r"\b(riunione|appuntamento|meeting|incontro)\s+con\s+(.+)", re.IGNORECASE)
_TOPIC_RE = re.compile(r"\bevento\s+(?:su|sul|sulla|per|di)\s+(.+)", re.IGNORECASE)
_NAMED_RE = re.compile(r"\b(?:chiamat[oa]|intitolat[oa])\s+[\"'“]?([^,.\"'”]+)", re.IGNORECASE)
_VERB_EVENT_RE = re.compile(
    r"\b(?:sposta|modifica|aggiorna|cambia|anticipa|posticipa|elimina|cancella|rimuovi)\s+"
    r"(?:l['’]\s*)?(?:evento|appuntamento)\s+[\"'“]?([^,.\"'”]+)",
    re.IGNORECASE,
)
_EVENT_NOUN_RE = re.compile(r"\b(riunione|appuntamento|meeting|incontro)\b", re.IGNORECASE)

_RANGE_RE = re.compile(r"\bdalle\s+(\d{1,2})(?:[:.](\d{2}))?\s+alle\s+(\d{1,2})(?:[:.](\d{2}))?", re.IGNORECASE)
_AT_RE = re.compile(r"\balle\s+(\d{1,2})(?:[:.](\d{2}))?(?!\d)(?!\s*(?:or[ae]|minut))", re.IGNORECASE)
_HHMM_RE = re.compile(r"\b(\d{1,2})[:.](\d{2})\b")
_TRAILING_TIME_RE = re.compile(r"(?:^|\s)(\d{1,2})(?:[:.](\d{2}))?\s*$")
_IN_DAYS_RE = re.compile(r"\b(?:tra|fra)\s+" + NUMBER_PATTERN + r"\s+(giorn[oi]|settiman[ae])", re.IGNORECASE)

_PERIODS = ("questa settimana", "prossima settimana", "settimana prossima", "questo mese")


def parse_locally(command: str) -> CanonicalAction:
    """Interpret the command without the LLM. Never raises."""
    try:
        action = _parse(command)
    except Exception as e:
        logger.error(f"Local parser failed on {command!r}: {e}", exc_info=True)
        return CanonicalAction(
            action=ActionType.VIEW_EVENTS,
            parameters=ActionParameters(max_results=LAST_RESORT_MAX_RESULTS),
            source="local",
        )

    logger.info(f"Local parser: {command!r} -> {action.action.value}")
    return action


def _parse(command: str) -> CanonicalAction:
    text = " ".join(command.split())
    lowered = text.lower()

    if any(phrase in lowered for phrase in DELETE_ALL_PHRASES):
        return _delete_all(lowered)

    attendee_add = _ATTENDEE_ADD_RE.search(text)
    if attendee_add:
        return _attendee_addition(text, lowered, attendee_add.group(1))

    action_type = classify(lowered)
    parameters = ActionParameters()

    if action_type == ActionType.CREATE_EVENT:
        title, attendees = extract_title_and_attendees(text)
        parameters.title = title or DEFAULT_TITLE
        parameters.attendees = attendees or None
    elif action_type in (ActionType.UPDATE_EVENT, ActionType.DELETE_EVENT):
        title, _ = extract_title_and_attendees(text)
        parameters.title = title or _bare_event_noun(text)
    elif action_type == ActionType.VIEW_EVENTS:
        title, _ = extract_title_and_attendees(text)
        parameters.query = title
        parameters.max_results = DEFAULT_MAX_RESULTS

    parameters.date = extract_date(lowered, allow_periods=action_type != ActionType.CREATE_EVENT)

    start_time, end_time = extract_times(text, allow_trailing=action_type == ActionType.CREATE_EVENT)
    if action_type in (ActionType.CREATE_EVENT, ActionType.UPDATE_EVENT):
        parameters.start_time = start_time
        parameters.end_time = end_time
        if action_type == ActionType.CREATE_EVENT and start_time and not end_time:
            parameters.end_time = _plus_one_hour(start_time)

    if action_type == ActionType.UPDATE_EVENT and not parameters.start_time:
        parameters.time_modification = detect_time_shift(text, minute_override=True)

    return CanonicalAction(action=action_type, parameters=parameters, source="local")


# ========== Special cases ==========


def _delete_all(lowered: str) -> CanonicalAction:
    parameters = ActionParameters(delete_all=True)
    if "questa settimana" in lowered:
        parameters.date = "questa settimana"
    elif "dopodomani" in lowered:
        parameters.date = "dopodomani"
    elif "oggi" in lowered:
        parameters.date = "oggi"
    elif "domani" in lowered:
        parameters.date = "domani"
    return CanonicalAction(action=ActionType.DELETE_EVENT, parameters=parameters, source="local")


def _attendee_addition(text: str, lowered: str, person: str) -> CanonicalAction:
    """"aggiungi Luigi alla riunione con Mario": only Luigi is added."""
    new_attendees = _split_names(_cut_at_stop_words(person, _DATE_TIME_WORDS))
    title, _ = extract_title_and_attendees(text)

    parameters = ActionParameters(
        title=title or _bare_event_noun(text),
        attendees=new_attendees,
        attendees_action=AttendeesAction.ADD,
        date=extract_date(lowered, allow_periods=False),
    )
    return CanonicalAction(action=ActionType.UPDATE_EVENT, parameters=parameters, source="local")


# ========== Classification ==========


def classify(lowered: str) -> ActionType:
    for action_type, keywords in ACTION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return action_type
    return ActionType.VIEW_EVENTS


# ========== Title & attendees ==========


def extract_title_and_attendees(text: str) -> tuple[Optional[str], list[str]]:
    """Title plus attendees named with "riunione con X e Y"."""
    match = _WITH_PERSON_RE.search(text)
    if match:
        names = _cut_at_stop_words(match.group(2), _NAME_STOP_WORDS)
        if names:
            noun = match.group(1).lower()
            return f"{noun.capitalize()} con {names}", _split_names(names)

    for pattern in (_NAMED_RE, _TOPIC_RE, _VERB_EVENT_RE):
        match = pattern.search(text)
        if match:
            title = _cut_at_stop_words(match.group(1), _DATE_TIME_WORDS)
            if title:
                return title, []

    return None, []


def _bare_event_noun(text: str) -> Optional[str]:
    match = _EVENT_NOUN_RE.search(text)
    return match.group(1).capitalize() if match else None


def _cut_at_stop_words(fragment: str, stop_words: set[str]) -> str:
    kept = []
    for raw_token in fragment.split():
        token = raw_token.strip(",;:!?\"'“”")
        if not token:
            break
        if token.lower() in stop_words or token[0].isdigit():
            break
        kept.append(token)
        if raw_token.rstrip().endswith((",", ";", ".", "!", "?")):
            break
    return " ".join(kept).strip(" .")


def _split_names(names: str) -> list[str]:
    parts = re.split(r"\s+e\s+|,\s*", names)
    return [part.strip() for part in parts if part.strip()]


# ========== Date & time ==========


def extract_date(lowered: str, allow_periods: bool = True) -> Optional[str]:
    if "dopodomani" in lowered:
        return "dopodomani"
    if "oggi" in lowered:
        return "oggi"
    if "domani" in lowered:
        return "domani"

    weekday = find_weekday(lowered)
    if weekday:
        if "prossim" in lowered:
            return f"{weekday} prossimo"
        return weekday

    match = _IN_DAYS_RE.search(lowered)
    if match:
        return match.group(0)

    if allow_periods:
        for period in _PERIODS:
            if period in lowered:
                return period
    return None


def extract_times(text: str, allow_trailing: bool = True) -> tuple[Optional[str], Optional[str]]:
    """(startTime, endTime) as HH:MM; endTime only for explicit ranges."""
    match = _RANGE_RE.search(text)
    if match:
        start = _to_hhmm(match.group(1), match.group(2))
        end = _to_hhmm(match.group(3), match.group(4))
        if start:
            return start, end

    patterns = [_AT_RE, _HHMM_RE]
    if allow_trailing:
        # "crea evento domani 15"
        patterns.append(_TRAILING_TIME_RE)

    for pattern in patterns:
        match = pattern.search(text)
        if match:
            start = _to_hhmm(match.group(1), match.group(2))
            if start:
                return start, None

    return None, None


def _to_hhmm(hours: str, minutes: Optional[str]) -> Optional[str]:
    hour = int(hours)
    minute = int(minutes) if minutes else 0
    if hour >= 24 or minute >= 60:
        return None
    return format_hhmm(hour, minute)


def _plus_one_hour(hhmm: str) -> str:
    hour, minute = (int(part) for part in hhmm.split(":"))
    return format_hhmm((hour + 1) % 24, minute)
