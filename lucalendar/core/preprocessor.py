"""
Command preprocessing.

Runs before any LLM call:
- detects special commands that can be answered directly (bulk delete)
- detects temporal modifications and multi-action commands
- extracts coarse date/time hints
- enriches the command text sent to the LLM
"""

import logging
import re

from lucalendar.core.dates import find_weekday, format_hhmm
from lucalendar.schemas.calendar import (
    ActionParameters,
    ActionType,
    CanonicalAction,
    PreprocessMetadata,
    PreprocessResult,
)

logger = logging.getLogger(__name__)

DELETE_ALL = "DELETE_ALL"

_DELETE_ALL_PERIOD_RE = re.compile(r"per (oggi|domani|questa settimana)", re.IGNORECASE)
_SPECIFIC_TIME_RE = re.compile(r"alle (\d{1,2})[:.]?(\d{2})?", re.IGNORECASE)
_HOUR_MODIFIER_RE = re.compile(r"(\d+)\s*or[ae]", re.IGNORECASE)
_MINUTE_MODIFIER_RE = re.compile(r"(\d+)\s*minut[oi]", re.IGNORECASE)

# (marker in the lower-cased command, split pattern applied to the original)
_MULTI_ACTION_SEPARATORS = [
    (" e poi ", re.compile(r"\s+e\s+poi\s+", re.IGNORECASE)),
    (", poi ", re.compile(r",\s*poi\s+", re.IGNORECASE)),
    ("; ", re.compile(r";\s*")),
]

_TEMPORAL_VERBS = ("sposta", "anticipa", "posticipa")

_PERIODS = [
    ("questa settimana", "current_week"),
    ("prossima settimana", "next_week"),
    ("questo mese", "current_month"),
]


def preprocess(command: str) -> PreprocessResult:
    """Scan the raw command and return it together with its metadata."""
    lowered = " ".join(command.lower().split())
    metadata = PreprocessMetadata()

    if lowered == "elimina tutto" or "elimina tutti gli eventi" in lowered:
        metadata.is_special_command = True
        metadata.special_command_type = DELETE_ALL

        parameters = ActionParameters(delete_all=True)
        period = _DELETE_ALL_PERIOD_RE.search(lowered)
        if period:
            parameters.date = period.group(1).lower()

        metadata.direct_response = CanonicalAction(
            action=ActionType.DELETE_EVENT,
            parameters=parameters,
            source="preprocessor",
        )
        logger.debug("Special command %s detected: %s", DELETE_ALL, command)
        return PreprocessResult(command=command, metadata=metadata)

    if any(verb in lowered for verb in _TEMPORAL_VERBS):
        metadata.has_temporal_context = True
        metadata.detected_entities.update(_extract_temporal_modifiers(lowered))

    for marker, pattern in _MULTI_ACTION_SEPARATORS:
        if marker in lowered:
            metadata.has_multiple_actions = True
            metadata.sub_commands = [part.strip() for part in pattern.split(command) if part.strip()]
            break

    references = extract_date_references(lowered)
    if references:
        metadata.has_temporal_context = True
        metadata.detected_entities.update(references)

    logger.debug("Preprocessed %r -> %s", command, metadata.model_dump(exclude_none=True))
    return PreprocessResult(command=command, metadata=metadata)


def _extract_temporal_modifiers(lowered: str) -> dict:
    entities: dict = {}

    time_match = _SPECIFIC_TIME_RE.search(lowered)
    if time_match:
        hours = int(time_match.group(1))
        minutes = int(time_match.group(2)) if time_match.group(2) else 0
        if hours < 24 and minutes < 60:
            entities["specificTime"] = format_hhmm(hours, minutes)

    hour_match = _HOUR_MODIFIER_RE.search(lowered)
    if hour_match:
        entities["hourModifier"] = int(hour_match.group(1))
        entities["modifier"] = "hour"

    minute_match = _MINUTE_MODIFIER_RE.search(lowered)
    if minute_match:
        entities["minuteModifier"] = int(minute_match.group(1))
        entities["modifier"] = "minute"

    return entities


def extract_date_references(lowered: str) -> dict:
    """Specific day, weekday and period references found in the text."""
    references: dict = {}

    if "dopodomani" in lowered:
        references["specificDate"] = "dopodomani"
    elif "oggi" in lowered:
        references["specificDate"] = "oggi"
    elif "domani" in lowered:
        references["specificDate"] = "domani"

    weekday = find_weekday(lowered)
    if weekday:
        references["weekday"] = weekday

    for phrase, period in _PERIODS:
        if phrase in lowered:
            references["period"] = period
            break

    return references


def enrich_command(preprocessed: PreprocessResult) -> str:
    """Command text to send to the LLM, with an explicit time appended when useful."""
    command = preprocessed.command
    metadata = preprocessed.metadata

    if metadata.direct_response is not None:
        return command

    specific_time = metadata.detected_entities.get("specificTime")
    if specific_time and " alle " not in command:
        return f"{command} alle {specific_time}"
    return command
