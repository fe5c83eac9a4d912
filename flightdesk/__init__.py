"""Flight booking backend: credential checks, flight inventory and mail workflows."""
from typing import Any

from .auth import Claims, CredentialVerifier
from .config import Settings, configure_logging
from .database import create_session_factory, init_db, session_scope
from .deadlines import Deadline
from .errors import (
    DeadlineExceeded,
    DependencyError,
    FlightDeskError,
    Forbidden,
    NotFound,
    SeatInventoryExists,
    Unauthenticated,
    ValidationError,
)
from .flights import (
    FlightDetails,
    add_flight,
    add_seats,
    create_flight,
    get_flight,
    get_latest_flight_id,
    list_seats,
    search_flights,
)
from .seating import DEFAULT_SEAT_LAYOUT, SeatClassSpec, SeatLayout
from .workflows import BookingDetails, PasswordReset, TicketConfirmation


def create_app(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "BookingDetails",
    "Claims",
    "CredentialVerifier",
    "DEFAULT_SEAT_LAYOUT",
    "Deadline",
    "DeadlineExceeded",
    "DependencyError",
    "FlightDeskError",
    "FlightDetails",
    "Forbidden",
    "NotFound",
    "PasswordReset",
    "SeatClassSpec",
    "SeatInventoryExists",
    "SeatLayout",
    "Settings",
    "TicketConfirmation",
    "Unauthenticated",
    "ValidationError",
    "add_flight",
    "add_seats",
    "configure_logging",
    "create_app",
    "create_flight",
    "create_session_factory",
    "get_flight",
    "get_latest_flight_id",
    "init_db",
    "list_seats",
    "search_flights",
    "session_scope",
]
