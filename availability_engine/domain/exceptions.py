"""
Domain-specific exception hierarchy for the availability engine.

Every error carries the HTTP status it surfaces as, so the outer API layer
can turn it into the ``{"message": ...}`` payload without a lookup table.
"""

from typing import Dict, Tuple


class AvailabilityError(Exception):
    """Base class for all engine-level errors."""

    status_code = 500

    @property
    def message(self) -> str:
        return str(self)


class InvalidInput(AvailabilityError):
    """Raised when caller input violates a basic precondition."""

    status_code = 400


class MalformedTime(InvalidInput):
    """Raised when a time, timestamp or date cannot be parsed or is out of range."""


class InvalidRange(InvalidInput):
    """Raised when an end is not after its start, or an exception escapes its base."""


class ConflictError(AvailabilityError):
    """Raised when a candidate overlaps an existing entity of the same kind."""

    status_code = 400

    def __init__(self, with_id: str, kind: str = ""):
        self.with_id = with_id
        self.kind = kind
        label = kind.replace("_", " ") if kind else "entry"
        super().__init__(f"Overlapping {label} exists (conflicts with {with_id})")


class NotFound(AvailabilityError):
    """Raised when a referenced provider, base or entity does not exist."""

    status_code = 404


class StoreUnavailable(AvailabilityError):
    """Raised when the store call failed; conflict status is unknown."""

    status_code = 500


class StoreTimeout(StoreUnavailable):
    """Raised when the store call exceeded its time budget."""

    status_code = 504


def error_payload(exc: AvailabilityError) -> Tuple[int, Dict[str, str]]:
    """Return ``(status, {"message": ...})`` for an engine error."""
    return exc.status_code, {"message": exc.message}
