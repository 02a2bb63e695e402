"""Exception hierarchy for the Legal Assistant backend."""
from __future__ import annotations

import enum


class LegalAssistantError(Exception):
    """Base exception for all legal-assistant errors."""


class UserInputError(LegalAssistantError):
    """Raised when a request is missing a required field or carries a blank value."""


class UnsupportedFormatError(LegalAssistantError):
    """Raised when an uploaded file's declared type cannot be decoded."""


class ExtractionError(LegalAssistantError):
    """Raised when a document cannot be read or yields no text."""


class MalformedResponseError(LegalAssistantError):
    """Raised when structured model output cannot be parsed into the expected shape."""


class CompletionErrorKind(str, enum.Enum):
    """Closed classification of completion-provider failures."""

    UNAVAILABLE = "unavailable"   # not configured, unreachable, timed out, 502/503/504
    AUTH = "auth"                 # 401 / 403
    VALIDATION = "validation"     # 400 / 404 / 422 (bad request, unknown model)
    UNEXPECTED = "unexpected"     # everything else

    @property
    def degradable(self) -> bool:
        """True when callers should fall back instead of failing the request."""
        return self is not CompletionErrorKind.UNEXPECTED


class CompletionError(LegalAssistantError):
    """Raised by the completion client; ``kind`` is decided once, at the boundary."""

    def __init__(self, kind: CompletionErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.args[0]}"


class InvalidTransitionError(LegalAssistantError):
    """Raised when a workflow event is not accepted in the session's current phase."""


class SessionNotFoundError(LegalAssistantError):
    """Raised when a workflow session id is unknown."""
