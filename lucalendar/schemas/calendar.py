"""
Calendar command schemas.

The canonical action is the single contract every interpretation stage
converges on. Attribute names are snake_case in Python; the wire format
(LLM prompt, API responses) uses the camelCase aliases.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Enums ==========


class ActionType(str, Enum):
    CREATE_EVENT = "CREATE_EVENT"
    UPDATE_EVENT = "UPDATE_EVENT"
    VIEW_EVENTS = "VIEW_EVENTS"
    DELETE_EVENT = "DELETE_EVENT"


class ModificationType(str, Enum):
    SHIFT = "SHIFT"
    EXACT = "EXACT"


class ShiftDirection(str, Enum):
    FORWARD = "FORWARD"
    BACKWARD = "BACKWARD"


class ShiftUnit(str, Enum):
    HOUR = "HOUR"
    MINUTE = "MINUTE"


class AttendeesAction(str, Enum):
    REPLACE = "REPLACE"
    ADD = "ADD"


# Italian / plural spellings the model sometimes uses for enum values
_ENUM_SYNONYMS = {
    "AVANTI": "FORWARD",
    "DOPO": "FORWARD",
    "INDIETRO": "BACKWARD",
    "PRIMA": "BACKWARD",
    "ORA": "HOUR",
    "ORE": "HOUR",
    "HOURS": "HOUR",
    "MINUTO": "MINUTE",
    "MINUTI": "MINUTE",
    "MINUTES": "MINUTE",
    "SPOSTAMENTO": "SHIFT",
    "ESATTO": "EXACT",
    "AGGIUNGI": "ADD",
    "SOSTITUISCI": "REPLACE",
}


def _upper_enum_value(value: Any) -> Any:
    if isinstance(value, str):
        key = value.strip().upper()
        return _ENUM_SYNONYMS.get(key, key)
    return value


# ========== Canonical action ==========


class TimeModification(CamelModel):
    """Relative (SHIFT) or absolute (EXACT) change of an event's time."""

    type: ModificationType
    direction: Optional[ShiftDirection] = None
    amount: Optional[int] = None
    unit: Optional[ShiftUnit] = None
    time: Optional[str] = None

    @field_validator("type", "direction", "unit", mode="before")
    @classmethod
    def _normalize_enum(cls, value: Any) -> Any:
        return _upper_enum_value(value)

    @model_validator(mode="after")
    def _check_shape(self) -> "TimeModification":
        if self.type == ModificationType.SHIFT:
            if self.direction is None or self.unit is None:
                raise ValueError("SHIFT requires direction and unit")
            if self.amount is None or self.amount <= 0:
                raise ValueError("SHIFT requires a positive amount")
        elif not self.time or not _HHMM_RE.match(self.time):
            raise ValueError("EXACT requires a time in HH:MM format")
        return self

    def signed_minutes(self) -> int:
        """Shift expressed in signed minutes (0 for EXACT)."""
        if self.type != ModificationType.SHIFT:
            return 0
        minutes = self.amount * (60 if self.unit == ShiftUnit.HOUR else 1)
        return minutes if self.direction == ShiftDirection.FORWARD else -minutes


class ActionParameters(CamelModel):
    """Parameters of a canonical action. Every field is optional."""

    title: Optional[str] = None
    new_title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    attendees: Optional[list[str]] = None
    event_id: Optional[str] = None
    query: Optional[str] = None
    max_results: Optional[int] = None
    delete_all: Optional[bool] = None
    attendees_action: Optional[AttendeesAction] = None
    time_modification: Optional[TimeModification] = None
    hours_to_shift: Optional[int] = None
    move_direction: Optional[ShiftDirection] = None

    @field_validator("attendees", mode="before")
    @classmethod
    def _coerce_attendees(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return [str(value).strip()] if str(value).strip() else []

    @field_validator("attendees_action", "move_direction", mode="before")
    @classmethod
    def _normalize_enum(cls, value: Any) -> Any:
        return _upper_enum_value(value)


class CanonicalAction(CamelModel):
    """Normalized {action, parameters} descriptor."""

    action: ActionType
    parameters: ActionParameters = Field(default_factory=ActionParameters)
    source: Optional[str] = None  # preprocessor | llm | local

    def to_payload(self) -> dict:
        """Wire representation (camelCase, no empty fields)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"source"})


# ========== Preprocessing ==========


class PreprocessMetadata(CamelModel):
    """Hints extracted from the raw command before interpretation."""

    is_special_command: bool = False
    special_command_type: Optional[str] = None
    direct_response: Optional[CanonicalAction] = None
    has_temporal_context: bool = False
    has_multiple_actions: bool = False
    sub_commands: list[str] = Field(default_factory=list)
    detected_entities: dict[str, Any] = Field(default_factory=dict)


class PreprocessResult(CamelModel):
    command: str
    metadata: PreprocessMetadata


# ========== Events & results ==========


class EventReference(BaseModel):
    """Last event created/updated within a session."""

    event_id: str
    title: str
    timestamp: datetime


class EventSummary(BaseModel):
    """Unified view of a calendar event."""

    id: str
    title: str
    description: Optional[str] = None
    starts_at: datetime
    ends_at: datetime
    all_day: bool = False
    attendees: list[str] = Field(default_factory=list)
    html_link: Optional[str] = None


class EventView(CamelModel):
    """Event as returned to the caller."""

    id: str
    title: str
    description: str = ""
    start: str
    end: str
    link: Optional[str] = None
    attendees: list[str] = Field(default_factory=list)


class ActionResult(CamelModel):
    """Outcome of executing a canonical action."""

    success: bool
    message: str
    action: Optional[ActionType] = None
    error: Optional[str] = None
    event_id: Optional[str] = None
    event_link: Optional[str] = None
    event: Optional[EventView] = None
    events: Optional[list[EventView]] = None
    deleted_count: Optional[int] = None
    potential_duplicate: Optional[bool] = None
    existing_event: Optional[EventView] = None
    results: Optional[list["ActionResult"]] = None


# ========== API ==========


class ProcessCommandRequest(BaseModel):
    command: str = Field(..., min_length=1)
    skip_duplicate_check: bool = False

    @field_validator("command")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("command must not be blank")
        return value


class ProcessCommandResponse(CamelModel):
    result: ActionResult
    interpretation: Optional[CanonicalAction] = None


class ParseCommandRequest(BaseModel):
    command: str = Field(..., min_length=1)


class ParseCommandResponse(CamelModel):
    interpretation: CanonicalAction
    metadata: PreprocessMetadata
