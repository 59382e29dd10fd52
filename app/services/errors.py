"""Domain errors raised by the flat membership services.

Every error carries a stable ``code`` so the HTTP layer can map it to a status
without inspecting messages. None of these are retried internally.
"""

from __future__ import annotations

import enum


class ConflictReason(str, enum.Enum):
    """State-machine guard that rejected an operation."""

    ALREADY_MEMBER = "already-member"
    DUPLICATE_REQUEST = "duplicate-request"
    ALREADY_RESOLVED = "already-resolved"


class FlatShareError(Exception):
    """Base class for caller-correctable domain errors."""

    code: str = "error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnauthenticatedError(FlatShareError):
    """No authenticated identity was supplied."""

    code = "unauthenticated"


class ForbiddenError(FlatShareError):
    """Caller is authenticated but lacks the membership the action requires."""

    code = "forbidden"


class NotFoundError(FlatShareError):
    """Referenced flat, join request or event does not exist."""

    code = "not-found"


class ConflictError(FlatShareError):
    """Join-request state machine violation."""

    def __init__(self, reason: ConflictReason, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or _CONFLICT_MESSAGES[reason])

    @property
    def code(self) -> str:  # type: ignore[override]
        return self.reason.value


class ValidationError(FlatShareError):
    """Malformed input that reached the core."""

    code = "validation-error"


_CONFLICT_MESSAGES = {
    ConflictReason.ALREADY_MEMBER: "User is already a member of this flat",
    ConflictReason.DUPLICATE_REQUEST: "A pending join request already exists for this flat",
    ConflictReason.ALREADY_RESOLVED: "Join request has already been resolved",
}
