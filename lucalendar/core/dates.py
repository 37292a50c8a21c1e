"""
Italian date/time phrase resolution.

Converts relative phrases ("domani", "prossimo lunedì", "tra 3 giorni",
"alle 15:30", "mezzogiorno") into concrete datetimes anchored to a
reference instant. Resolution never raises: unknown phrases fall back to
the reference instant.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

# Monday == 0, as in datetime.weekday()
WEEKDAYS = {
    "lunedì": 0,
    "lunedi": 0,
    "martedì": 1,
    "martedi": 1,
    "mercoledì": 2,
    "mercoledi": 2,
    "giovedì": 3,
    "giovedi": 3,
    "venerdì": 4,
    "venerdi": 4,
    "sabato": 5,
    "domenica": 6,
}

WEEKDAY_NAMES = ["lunedì", "martedì", "mercoledì", "giovedì", "venerdì", "sabato", "domenica"]
MONTH_NAMES = [
    "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
    "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
]

NUMBER_WORDS = {
    "un": 1,
    "uno": 1,
    "una": 1,
    "un'": 1,
    "due": 2,
    "tre": 3,
    "quattro": 4,
    "cinque": 5,
    "sei": 6,
    "sette": 7,
    "otto": 8,
    "nove": 9,
    "dieci": 10,
    "undici": 11,
    "dodici": 12,
    "quindici": 15,
    "venti": 20,
    "trenta": 30,
    "quaranta": 40,
    "quarantacinque": 45,
}

NAMED_TIMES = [
    ("mezzogiorno", 12, 0),
    ("mezzanotte", 0, 0),
    ("pranzo", 13, 0),
    ("cena", 20, 0),
]

WEEKDAY_PATTERN = r"(lunedì|lunedi|martedì|martedi|mercoledì|mercoledi|giovedì|giovedi|venerdì|venerdi|sabato|domenica)"
NUMBER_PATTERN = r"(\d+|" + "|".join(sorted((re.escape(w) for w in NUMBER_WORDS), key=len, reverse=True)) + r")"

_WEEKDAY_RE = re.compile(r"\b" + WEEKDAY_PATTERN + r"(?!\w)", re.IGNORECASE)
_IN_DAYS_RE = re.compile(r"tra\s+" + NUMBER_PATTERN + r"\s+(giorn[oi]|settiman[ae])", re.IGNORECASE)
_HHMM_RE = re.compile(r"(\d{1,2})[:.](\d{2})")
_HOUR_RE = re.compile(
    r"\b(\d{1,2})\s*(am|pm|del mattino|del pomeriggio|di sera|di notte)?", re.IGNORECASE
)
_DIRECT_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d")
_SHORT_DATE_RE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})$")


def local_now(tz_name: str = "Europe/Rome") -> datetime:
    """Current instant in the configured timezone."""
    return datetime.now(ZoneInfo(tz_name))


def parse_number(token: str) -> Optional[int]:
    """Parse a digit string or an Italian number word."""
    token = token.strip().lower()
    if token.isdigit():
        return int(token)
    return NUMBER_WORDS.get(token)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def find_weekday(text: str) -> Optional[str]:
    """First weekday name in text (lower-cased), if any."""
    match = _WEEKDAY_RE.search(text)
    return match.group(1).lower() if match else None


# ========== Dates ==========


def resolve_date(text: Optional[str], reference: datetime) -> datetime:
    """
    Resolve an Italian date phrase against a reference instant.

    Relative phrases resolve to midnight of the target day. Unparseable
    text returns the reference instant unchanged.
    """
    if not text:
        return reference

    phrase = text.lower().strip()
    today = start_of_day(reference)

    if phrase == "oggi":
        return today
    if phrase == "domani":
        return today + timedelta(days=1)
    if phrase == "dopodomani":
        return today + timedelta(days=2)

    if "prossimo" in phrase or "prossima" in phrase:
        resolved = _resolve_next(phrase, today)
        if resolved is not None:
            return resolved

    match = _IN_DAYS_RE.search(phrase)
    if match:
        amount = parse_number(match.group(1))
        if amount is not None:
            days = amount if match.group(2).startswith("giorn") else amount * 7
            return today + timedelta(days=days)

    weekday = find_weekday(phrase)
    if weekday:
        # Bare weekday: upcoming occurrence, today included
        days_ahead = (WEEKDAYS[weekday] - today.weekday()) % 7
        return today + timedelta(days=days_ahead)

    direct = _parse_direct(text.strip(), reference)
    if direct is not None:
        return direct

    logger.debug("Unparseable date phrase %r, using reference %s", text, reference)
    return reference


def _resolve_next(phrase: str, today: datetime) -> Optional[datetime]:
    """Handle "prossimo lunedì", "lunedì prossimo", "prossima settimana"."""
    weekday = find_weekday(phrase)
    if weekday:
        days_ahead = (WEEKDAYS[weekday] - today.weekday()) % 7
        if days_ahead == 0:
            # "next Monday" said on a Monday is next week's Monday
            days_ahead = 7
        return today + timedelta(days=days_ahead)

    if "settimana" in phrase:
        return today + timedelta(days=7)

    return None


def _parse_direct(text: str, reference: datetime) -> Optional[datetime]:
    """Parse standard date strings (ISO, DD/MM/YYYY, DD/MM)."""
    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _DIRECT_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        match = _SHORT_DATE_RE.match(text)
        if match:
            try:
                parsed = datetime(reference.year, int(match.group(2)), int(match.group(1)))
            except ValueError:
                parsed = None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=reference.tzinfo)
    return parsed.astimezone(reference.tzinfo) if reference.tzinfo else parsed


# ========== Times ==========


def resolve_time(text: Optional[str], reference: datetime) -> datetime:
    """
    Apply the time of day found in text to the reference instant.

    Tries HH:MM / HH.MM, then a bare hour with am/pm or Italian period
    words, then named times. Without a match the reference is returned
    unchanged.
    """
    if not text:
        return reference

    match = _HHMM_RE.search(text)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours < 24 and minutes < 60:
            return reference.replace(hour=hours, minute=minutes, second=0, microsecond=0)

    match = _HOUR_RE.search(text)
    if match:
        hour = int(match.group(1))
        period = (match.group(2) or "").lower()
        if period == "pm" or "pomeriggio" in period or "sera" in period:
            if hour < 12:
                hour += 12
        elif (period == "am" or "mattino" in period) and hour == 12:
            hour = 0
        if hour < 24:
            return reference.replace(hour=hour, minute=0, second=0, microsecond=0)

    lowered = text.lower()
    for name, hour, minute in NAMED_TIMES:
        if name in lowered:
            return reference.replace(hour=hour, minute=minute, second=0, microsecond=0)

    logger.debug("No time pattern recognised in %r", text)
    return reference


def combine_date_time(
    date_value: Optional[str | datetime],
    time_text: Optional[str],
    reference: datetime,
) -> datetime:
    """Resolve the date, then overwrite hour and minute only."""
    if isinstance(date_value, datetime):
        base = date_value
    else:
        base = resolve_date(date_value, reference)

    if not time_text:
        return base
    return resolve_time(time_text, base).replace(second=0, microsecond=0)


def format_hhmm(hour: int, minute: int = 0) -> str:
    return f"{hour:02d}:{minute:02d}"


# ========== Windows ==========


def day_window(day: datetime) -> tuple[datetime, datetime]:
    """[00:00, 23:59:59.999999] of the given day."""
    start = start_of_day(day)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def current_week_window(reference: datetime) -> tuple[datetime, datetime]:
    """Monday 00:00 to Sunday 23:59:59.999999 of the reference week."""
    monday = start_of_day(reference) - timedelta(days=reference.weekday())
    return monday, monday + timedelta(days=7) - timedelta(microseconds=1)


def current_month_window(reference: datetime) -> tuple[datetime, datetime]:
    first = start_of_day(reference).replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return first, next_first - timedelta(microseconds=1)


def resolve_window(text: Optional[str], reference: datetime) -> tuple[datetime, datetime]:
    """Date window for listing/deleting: a week, a month, or a single day."""
    phrase = (text or "oggi").lower().strip()
    if phrase in ("questa settimana", "settimana"):
        return current_week_window(reference)
    if phrase in ("prossima settimana", "settimana prossima"):
        return current_week_window(reference + timedelta(days=7))
    if phrase == "questo mese":
        return current_month_window(reference)
    return day_window(resolve_date(phrase, reference))


def is_today(value: datetime, reference: datetime) -> bool:
    return value.date() == reference.date()


# ========== Formatting ==========


def format_date(value: datetime) -> str:
    """Italian long date, e.g. "martedì 20 ottobre 2026"."""
    return f"{WEEKDAY_NAMES[value.weekday()]} {value.day} {MONTH_NAMES[value.month - 1]} {value.year}"


def format_time(value: datetime) -> str:
    return value.strftime("%H:%M")


def format_date_time(value: datetime) -> str:
    return f"{format_date(value)} alle {format_time(value)}"
