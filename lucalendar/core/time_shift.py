"""Detection of relative time shifts ("posticipa di due ore") in Italian text."""

import re
from typing import Optional

from lucalendar.core.dates import NUMBER_PATTERN, parse_number
from lucalendar.schemas.calendar import (
    ModificationType,
    ShiftDirection,
    ShiftUnit,
    TimeModification,
)

FORWARD_KEYWORDS = ("ora in avanti", "ore in avanti", "posticipa", "ritarda", "più tardi")
BACKWARD_KEYWORDS = ("ora prima", "ore prima", "anticipa", "più presto")

_HOURS_RE = re.compile(r"(?<!\w)" + NUMBER_PATTERN + r"\s*or[ae]\b", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(?<!\w)" + NUMBER_PATTERN + r"\s*minut[oi]\b", re.IGNORECASE)
_HALF_HOUR_RE = re.compile(r"mezz['’ ]?ora", re.IGNORECASE)


def detect_direction(text: str) -> Optional[ShiftDirection]:
    lowered = text.lower()
    if any(keyword in lowered for keyword in FORWARD_KEYWORDS):
        return ShiftDirection.FORWARD
    if any(keyword in lowered for keyword in BACKWARD_KEYWORDS):
        return ShiftDirection.BACKWARD
    return None


def find_hours(text: str) -> Optional[int]:
    match = _HOURS_RE.search(text)
    return parse_number(match.group(1)) if match else None


def find_minutes(text: str) -> Optional[int]:
    match = _MINUTES_RE.search(text)
    if match:
        return parse_number(match.group(1))
    if _HALF_HOUR_RE.search(text):
        return 30
    return None


def detect_time_shift(text: str, minute_override: bool = True) -> Optional[TimeModification]:
    """
    Build a SHIFT descriptor from shift phrases in text.

    Magnitude defaults to one hour when no number is found. With
    ``minute_override`` a minute count replaces an already detected
    hour count; otherwise minutes are used only when no hours are given.
    """
    hours = find_hours(text)
    minutes = find_minutes(text)

    direction = detect_direction(text)
    if direction is None:
        # "sposta di 2 ore" carries a magnitude but no direction word
        if "sposta" in text.lower() and (hours or minutes):
            direction = ShiftDirection.FORWARD
        else:
            return None

    unit, amount = ShiftUnit.HOUR, hours or 1
    if minutes and (minute_override or not hours):
        unit, amount = ShiftUnit.MINUTE, minutes

    return TimeModification(
        type=ModificationType.SHIFT,
        direction=direction,
        amount=amount,
        unit=unit,
    )
