"""Domain and infrastructure error types."""

from __future__ import annotations

from typing import Any


class LifecycleError(Exception):
    """Base class for domain errors raised by the lifecycle and scoring engines."""

    kind = "lifecycle_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.context:
            payload["context"] = dict(self.context)
        return payload


class NotFoundError(LifecycleError):
    """Referenced application, rubric or score does not exist."""

    kind = "not_found"


class ValidationError(LifecycleError):
    """Malformed or out-of-range input."""

    kind = "validation"


class DegenerateScoreError(ValidationError):
    """Weighted maximum is zero so no percentage can be derived."""

    kind = "degenerate_score"


class InvalidStateError(LifecycleError):
    """Operation not permitted in the application's current state."""

    kind = "invalid_state"


class RescheduleLimitError(InvalidStateError):
    """Demo or interview has already used its reschedule."""

    kind = "reschedule_limit"


class ConflictError(LifecycleError):
    """Applicant already holds an active application."""

    kind = "conflict"


class AuthorizationError(LifecycleError):
    """Actor lacks the capability for an operation."""

    kind = "forbidden"


class RepositoryError(RuntimeError):
    """Storage failure surfaced unchanged to callers."""


class ConcurrentUpdateError(RepositoryError):
    """Conditional update lost against a concurrent writer."""

    def __init__(self, entity_id: int, expected: Any, actual: Any) -> None:
        super().__init__(
            f"Record {entity_id} changed concurrently (expected {expected}, found {actual})"
        )
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual


__all__ = [
    "LifecycleError",
    "NotFoundError",
    "ValidationError",
    "DegenerateScoreError",
    "InvalidStateError",
    "RescheduleLimitError",
    "ConflictError",
    "AuthorizationError",
    "RepositoryError",
    "ConcurrentUpdateError",
]
