"""Error taxonomy for the command pipeline."""


class CalendarAssistantError(Exception):
    """Base class for all pipeline errors."""


class ParseError(CalendarAssistantError):
    """Raised when LLM output cannot be turned into a canonical action."""


class LLMProviderError(CalendarAssistantError):
    """Raised when the LLM provider fails or is not configured."""


class NotFoundError(CalendarAssistantError):
    """Raised when no calendar event matches a title or context reference."""

    def __init__(self, message: str, title: str | None = None) -> None:
        super().__init__(message)
        self.title = title


class AuthExpiredError(CalendarAssistantError):
    """Raised when the calendar credentials are no longer valid."""


class BackendError(CalendarAssistantError):
    """Raised when the calendar API fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
