"""Pydantic schemas for the command pipeline and API."""

from lucalendar.schemas.calendar import (
    ActionParameters,
    ActionResult,
    ActionType,
    AttendeesAction,
    CanonicalAction,
    EventReference,
    EventSummary,
    EventView,
    ModificationType,
    ParseCommandRequest,
    ParseCommandResponse,
    PreprocessMetadata,
    PreprocessResult,
    ProcessCommandRequest,
    ProcessCommandResponse,
    ShiftDirection,
    ShiftUnit,
    TimeModification,
)

__all__ = [
    "ActionParameters",
    "ActionResult",
    "ActionType",
    "AttendeesAction",
    "CanonicalAction",
    "EventReference",
    "EventSummary",
    "EventView",
    "ModificationType",
    "ParseCommandRequest",
    "ParseCommandResponse",
    "PreprocessMetadata",
    "PreprocessResult",
    "ProcessCommandRequest",
    "ProcessCommandResponse",
    "ShiftDirection",
    "ShiftUnit",
    "TimeModification",
]
