"""
LLM response normalization.

Turns the model's raw text into a CanonicalAction:
1. Extract the JSON object (code fences, surrounding prose, known quoting glitches)
2. Decode it as the canonical nested schema, else the flat Italian schema,
   else scavenge an action label and fields wherever they are
3. Normalize field names (English wins over Italian) and values
4. Enrich from the original user command (time shifts, delete-all, defaults)

Downstream code only ever sees the CanonicalAction shape.
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from lucalendar.core.dates import format_hhmm
from lucalendar.core.errors import ParseError
from lucalendar.core.time_shift import detect_time_shift
from lucalendar.schemas.calendar import (
    ActionParameters,
    ActionType,
    AttendeesAction,
    CanonicalAction,
)

logger = logging.getLogger(__name__)

DEFAULT_ACTION = ActionType.VIEW_EVENTS
DEFAULT_MAX_RESULTS = 10

_FENCE_RE = re.compile(r"```(?:json|JSON)?")
# Known model defect: "startTime": "15":00" instead of "15:00"
_BROKEN_TIME_RE = re.compile(r'"(\d{1,2})":(\d{2})"')
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_TIME_VALUE_RE = re.compile(r"^\s*(\d{1,2})(?:[:.h](\d{2}))?\s*$")

_ACTION_ALIASES = {
    "CREATE_EVENT": ActionType.CREATE_EVENT,
    "CREATE": ActionType.CREATE_EVENT,
    "ADD_EVENT": ActionType.CREATE_EVENT,
    "CREA_EVENTO": ActionType.CREATE_EVENT,
    "CREA": ActionType.CREATE_EVENT,
    "NUOVO_EVENTO": ActionType.CREATE_EVENT,
    "AGGIUNGI_EVENTO": ActionType.CREATE_EVENT,
    "UPDATE_EVENT": ActionType.UPDATE_EVENT,
    "UPDATE": ActionType.UPDATE_EVENT,
    "EDIT_EVENT": ActionType.UPDATE_EVENT,
    "MOVE_EVENT": ActionType.UPDATE_EVENT,
    "MODIFICA_EVENTO": ActionType.UPDATE_EVENT,
    "MODIFICA": ActionType.UPDATE_EVENT,
    "AGGIORNA_EVENTO": ActionType.UPDATE_EVENT,
    "SPOSTA_EVENTO": ActionType.UPDATE_EVENT,
    "VIEW_EVENTS": ActionType.VIEW_EVENTS,
    "VIEW_EVENT": ActionType.VIEW_EVENTS,
    "VIEW": ActionType.VIEW_EVENTS,
    "LIST_EVENTS": ActionType.VIEW_EVENTS,
    "LIST": ActionType.VIEW_EVENTS,
    "VISUALIZZA_EVENTI": ActionType.VIEW_EVENTS,
    "VISUALIZZA": ActionType.VIEW_EVENTS,
    "MOSTRA_EVENTI": ActionType.VIEW_EVENTS,
    "ELENCA_EVENTI": ActionType.VIEW_EVENTS,
    "DELETE_EVENT": ActionType.DELETE_EVENT,
    "DELETE_EVENTS": ActionType.DELETE_EVENT,
    "DELETE": ActionType.DELETE_EVENT,
    "REMOVE_EVENT": ActionType.DELETE_EVENT,
    "ELIMINA_EVENTO": ActionType.DELETE_EVENT,
    "ELIMINA_EVENTI": ActionType.DELETE_EVENT,
    "ELIMINA": ActionType.DELETE_EVENT,
    "CANCELLA_EVENTO": ActionType.DELETE_EVENT,
}

# Verb stems used when the label is not in the table
_ACTION_STEMS = [
    (("CREA", "CREATE", "ADD", "AGGIUNG", "NUOV", "INSERISC"), ActionType.CREATE_EVENT),
    (("MODIFIC", "UPDATE", "AGGIORN", "SPOST", "EDIT", "MOVE", "CAMBI"), ActionType.UPDATE_EVENT),
    (("ELIMIN", "DELETE", "CANCELL", "RIMUOV", "REMOVE"), ActionType.DELETE_EVENT),
    (("VISUALIZZ", "VIEW", "LIST", "MOSTR", "ELENC", "SHOW", "GET"), ActionType.VIEW_EVENTS),
]

_FLAT_ACTIONS = {
    "crea_evento": ActionType.CREATE_EVENT,
    "modifica_evento": ActionType.UPDATE_EVENT,
    "aggiorna_evento": ActionType.UPDATE_EVENT,
    "visualizza_eventi": ActionType.VIEW_EVENTS,
    "mostra_eventi": ActionType.VIEW_EVENTS,
    "elimina_evento": ActionType.DELETE_EVENT,
    "cancella_evento": ActionType.DELETE_EVENT,
}

# Canonical field -> accepted keys, English first (English wins)
FIELD_ALIASES: list[tuple[str, tuple[str, ...]]] = [
    ("title", ("title", "titolo", "riepilogo", "summary")),
    ("new_title", ("newTitle", "nuovo_titolo")),
    ("description", ("description", "descrizione")),
    ("date", ("date", "data", "giorno")),
    ("start_time", ("startTime", "ora_inizio", "start_time")),
    ("end_time", ("endTime", "ora_fine", "end_time")),
    ("attendees", ("attendees", "partecipanti")),
    ("event_id", ("eventId", "event_id", "id_evento")),
    ("query", ("query", "ricerca")),
    ("max_results", ("maxResults", "max_results", "max_risultati")),
    ("delete_all", ("deleteAll", "delete_all", "elimina_tutto")),
    ("attendees_action", ("attendeesAction", "attendees_action")),
    ("time_modification", ("timeModification", "time_modification", "modifica_orario")),
    ("hours_to_shift", ("hoursToShift", "hours_to_shift", "ore_spostamento")),
    ("move_direction", ("moveDirection", "move_direction")),
]

_LABEL_KEYS = ("intent", "operation", "operazione", "tipo")
_PARAMETER_CONTAINERS = ("parameters", "parametri", "params", "dettagli")


# ========== JSON extraction ==========


def extract_json(raw_text: str) -> dict:
    """Locate, repair and parse the JSON object embedded in the model output."""
    if not raw_text or not raw_text.strip():
        raise ParseError("Empty LLM response")

    text = _FENCE_RE.sub("", raw_text)
    start = text.find("{")
    end = text.rfind("}")
    if start < 0:
        raise ParseError("No JSON object found in LLM response")
    if end < start:
        raise ParseError("JSON object in LLM response is not terminated")

    snippet = _BROKEN_TIME_RE.sub(r'"\1:\2"', text[start : end + 1])

    try:
        data = json.loads(snippet)
    except json.JSONDecodeError:
        repaired = _repair(snippet)
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON in LLM response: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("LLM response JSON is not an object")

    logger.debug("Extracted JSON from LLM response: %s", data)
    return data


def _repair(snippet: str) -> str:
    """Second-chance repairs for common formatting glitches."""
    repaired = snippet.replace("\\n", " ").replace("\\\"", '"')
    repaired = repaired.replace("“", '"').replace("”", '"')
    return _TRAILING_COMMA_RE.sub(r"\1", repaired)


# ========== Action labels ==========


def normalize_action_label(label: Any) -> ActionType:
    """Map any action label onto one of the four canonical actions."""
    if not isinstance(label, str) or not label.strip():
        return DEFAULT_ACTION

    key = re.sub(r"[\s\-]+", "_", label.strip().upper())
    if key in _ACTION_ALIASES:
        return _ACTION_ALIASES[key]

    for stems, action in _ACTION_STEMS:
        if any(key.startswith(stem) for stem in stems):
            return action

    logger.warning("Unrecognised action label %r, defaulting to %s", label, DEFAULT_ACTION.value)
    return DEFAULT_ACTION


def _flat_action(label: Any) -> ActionType:
    if isinstance(label, str):
        key = re.sub(r"[\s\-]+", "_", label.strip().lower())
        if key in _FLAT_ACTIONS:
            return _FLAT_ACTIONS[key]
    return normalize_action_label(label)


# ========== Decoding ==========


def decode(data: dict) -> tuple[ActionType, dict]:
    """
    Decode a parsed JSON object into (action, raw canonical fields).

    Tries the canonical nested schema, then the flat Italian schema, then
    scavenges a label and parameters from alternative keys.
    """
    if "action" in data:
        container = _parameter_container(data)
        fields = _collect_fields(container)
        # Fields the model put at top level are kept when not in parameters
        for name, value in _collect_fields(data).items():
            fields.setdefault(name, value)
        return normalize_action_label(data["action"]), fields

    if "azione" in data:
        fields = _collect_fields(data)
        for name, value in _collect_fields(_parameter_container(data)).items():
            fields.setdefault(name, value)
        return _flat_action(data["azione"]), fields

    for key in _LABEL_KEYS:
        if isinstance(data.get(key), str):
            container = _parameter_container(data)
            fields = _collect_fields(container)
            for name, value in _collect_fields(data).items():
                fields.setdefault(name, value)
            logger.debug("Scavenged action label from %r", key)
            return normalize_action_label(data[key]), fields

    raise ParseError('Missing "action" field in LLM response')


def _parameter_container(data: dict) -> dict:
    for key in _PARAMETER_CONTAINERS:
        value = data.get(key)
        if isinstance(value, dict):
            return value
    return {}


def _collect_fields(source: dict) -> dict:
    fields: dict = {}
    for name, keys in FIELD_ALIASES:
        for key in keys:
            value = source.get(key)
            if value is None or value == "" or value == []:
                continue
            fields[name] = value
            break
    return fields


def _normalize_time_value(value: Any) -> Any:
    """"15" -> "15:00", "9.30" -> "09:30"; anything else is left alone."""
    if isinstance(value, int) and 0 <= value < 24:
        return format_hhmm(value)
    if isinstance(value, str):
        match = _TIME_VALUE_RE.match(value)
        if match:
            hours = int(match.group(1))
            minutes = int(match.group(2) or 0)
            if hours < 24 and minutes < 60:
                return format_hhmm(hours, minutes)
    return value


def _prepare_time_modification(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    prepared = dict(value)
    if "type" not in prepared:
        prepared["type"] = "EXACT" if prepared.get("time") and not prepared.get("amount") else "SHIFT"
    if prepared.get("time") is not None:
        prepared["time"] = _normalize_time_value(prepared["time"])
    return prepared


def build_parameters(fields: dict) -> ActionParameters:
    """Validate raw fields, dropping the ones that cannot be repaired."""
    prepared = dict(fields)
    for name in ("start_time", "end_time"):
        if name in prepared:
            prepared[name] = _normalize_time_value(prepared[name])
    if "time_modification" in prepared:
        prepared["time_modification"] = _prepare_time_modification(prepared["time_modification"])
    for name in ("title", "new_title", "description", "date", "query", "event_id"):
        if name in prepared and not isinstance(prepared[name], str):
            prepared[name] = str(prepared[name])

    while True:
        try:
            return ActionParameters.model_validate(prepared)
        except ValidationError as exc:
            bad = {str(err["loc"][0]) for err in exc.errors() if err.get("loc")}
            dropped = [name for name in prepared if name in bad or to_camel(name) in bad]
            if not dropped:
                raise ParseError(f"Unusable parameters in LLM response: {exc}") from exc
            logger.warning("Dropping malformed fields from LLM response: %s", dropped)
            for name in dropped:
                prepared.pop(name)


# ========== Enrichment ==========


def enrich_from_command(action: CanonicalAction, original_command: str) -> CanonicalAction:
    """Fill fields the model left out using the original user text. Never overwrites."""
    params = action.parameters
    lowered = (original_command or "").lower()

    if action.action == ActionType.UPDATE_EVENT:
        has_explicit_time = params.start_time is not None or params.end_time is not None
        has_shift = params.time_modification is not None or params.hours_to_shift is not None
        if not has_explicit_time and not has_shift:
            shift = detect_time_shift(original_command, minute_override=False)
            if shift is not None:
                params.time_modification = shift
                logger.debug("Inferred time modification from command: %s", shift)

        if params.attendees and params.attendees_action is None and "aggiungi" in lowered:
            if "alla riunione" in lowered or "all'evento" in lowered:
                params.attendees_action = AttendeesAction.ADD

    elif action.action == ActionType.DELETE_EVENT:
        if not params.model_dump(exclude_none=True) and ("tutto" in lowered or "tutti" in lowered):
            params.date = "oggi"
            params.delete_all = True

    elif action.action == ActionType.VIEW_EVENTS:
        if params.max_results is None:
            params.max_results = DEFAULT_MAX_RESULTS

    return action


# ========== Entry points ==========


def normalize_payload(data: dict, original_command: str = "") -> CanonicalAction:
    """Normalize an already-parsed JSON object."""
    action_type, fields = decode(data)
    action = CanonicalAction(
        action=action_type,
        parameters=build_parameters(fields),
        source="llm",
    )
    return enrich_from_command(action, original_command)


def normalize(raw_text: str, original_command: str = "") -> CanonicalAction:
    """
    Normalize raw LLM output into a CanonicalAction.

    Raises:
        ParseError: no JSON object could be located or it carries no action
    """
    action = normalize_payload(extract_json(raw_text), original_command)
    logger.debug("Normalized LLM response: %s", action.to_payload())
    return action
