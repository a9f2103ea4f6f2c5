"""Error types raised by the scheduling engine.

Every error carries a machine-readable ``kind``, a human-readable ``detail``
and the HTTP status the API layer reports it with.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for all errors surfaced to callers."""

    kind: str = "error"
    status: int = 500

    def __init__(self, detail: str, data: Optional[dict[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.data = data or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        payload = {"error": self.kind, "message": self.detail}
        if self.data:
            payload["details"] = self.data
        return payload


class NotFoundError(SchedulingError):
    """Referenced doctor, facility or appointment does not exist."""

    kind = "not_found"
    status = 404


class ForbiddenError(SchedulingError):
    """Caller does not own the resource."""

    kind = "forbidden"
    status = 403


class InvalidStateError(SchedulingError):
    """Request violates a precondition."""

    kind = "invalid_state"
    status = 400


class ValidationError(InvalidStateError):
    """Malformed input, e.g. out-of-range coordinates or bad dates."""

    kind = "invalid_input"

    @classmethod
    def from_pydantic(cls, error, detail: str = "Validation failed") -> "ValidationError":
        """Wrap a pydantic validation error, keeping only JSON-safe details."""
        errors = error.errors(include_url=False, include_context=False, include_input=False)
        return cls(detail, {"errors": errors})


class ConflictError(SchedulingError):
    """Slot is held by another active appointment."""

    kind = "conflict"
    status = 409


class StorageTimeoutError(SchedulingError):
    """A storage call did not complete within the configured timeout."""

    kind = "timeout"
    status = 504


class ReservationOutcomeUnknown(StorageTimeoutError):
    """Timed out while reserving a slot; the write may or may not have happened."""

    kind = "reservation_outcome_unknown"


class StorageUnavailableError(SchedulingError):
    """The storage layer failed or could not be reached."""

    kind = "unavailable"
    status = 503
