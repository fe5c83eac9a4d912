"""Error taxonomy shared by the workflows and the HTTP layer."""
from __future__ import annotations

from typing import Optional


class FlightDeskError(RuntimeError):
    """Base class for every error a workflow can surface to a caller."""

    status_code: int = 500
    kind: str = "error"
    default_message: str = "internal error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(FlightDeskError):
    """Raised when a credential is missing, malformed, expired or forged."""

    status_code = 401
    kind = "unauthenticated"
    default_message = "invalid credential"


class Forbidden(FlightDeskError):
    """Raised when an authenticated caller lacks the required role."""

    status_code = 403
    kind = "forbidden"
    default_message = "insufficient role"


class NotFound(FlightDeskError):
    status_code = 404
    kind = "not_found"
    default_message = "not found"


class ValidationError(FlightDeskError):
    status_code = 400
    kind = "validation"
    default_message = "invalid request"


class SeatInventoryExists(ValidationError):
    """Raised when seats are requested for a flight that already has them."""

    status_code = 409
    kind = "conflict"
    default_message = "seat inventory already exists"


class DependencyError(FlightDeskError):
    """Raised when the store, renderer, hasher or mail transport fails."""

    status_code = 500
    kind = "dependency"
    default_message = "dependency error"

    def __init__(self, message: Optional[str] = None, *, origin: str = "unknown") -> None:
        super().__init__(message)
        self.origin = origin


class DeadlineExceeded(DependencyError):
    status_code = 504
    kind = "deadline"
    default_message = "deadline exceeded"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message, origin="deadline")


__all__ = [
    "DeadlineExceeded",
    "DependencyError",
    "FlightDeskError",
    "Forbidden",
    "NotFound",
    "SeatInventoryExists",
    "Unauthenticated",
    "ValidationError",
]
