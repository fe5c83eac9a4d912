"""Flight lookup, creation and seat inventory provisioning."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .database import session_scope
from .errors import DependencyError, NotFound, SeatInventoryExists, ValidationError
from .models import Flight, FlightStatus, Seat
from .seating import DEFAULT_SEAT_LAYOUT, SeatLayout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlightDetails:
    """Validated input for inserting a flight."""

    origin: str
    destination: str
    date: date
    duration: str
    price: Decimal

    def __post_init__(self) -> None:
        if not self.origin.strip() or not self.destination.strip():
            raise ValidationError("origin and destination are required")
        if self.origin.strip().lower() == self.destination.strip().lower():
            raise ValidationError("origin and destination must differ")
        if not self.duration.strip():
            raise ValidationError("duration is required")
        try:
            price = Decimal(str(self.price))
        except InvalidOperation as exc:
            raise ValidationError("price must be a number") from exc
        if not price.is_finite():
            raise ValidationError("price must be a number")
        if price < 0:
            raise ValidationError("price must not be negative")
        object.__setattr__(self, "price", price)


def get_flight(session: Session, flight_id: int) -> Flight:
    try:
        flight = session.get(Flight, flight_id)
    except SQLAlchemyError as exc:
        raise DependencyError("database error", origin="database") from exc
    if flight is None:
        raise NotFound("flight not found")
    return flight


def add_flight(session: Session, details: FlightDetails) -> Flight:
    """Insert a flight with status Available and return it with its generated id."""

    flight = Flight(
        origin=details.origin.strip(),
        destination=details.destination.strip(),
        date=details.date,
        duration=details.duration.strip(),
        price=details.price,
        status=FlightStatus.AVAILABLE,
    )
    session.add(flight)
    try:
        session.flush()
    except SQLAlchemyError as exc:
        raise DependencyError("database error", origin="database") from exc
    return flight


def get_latest_flight_id(session: Session) -> Optional[int]:
    """Return the highest flight id currently stored.

    Not suitable for discovering the id of a row just inserted by this
    session; concurrent inserts can interleave. Use the flushed ``Flight.id``.
    """

    try:
        return session.scalar(select(func.max(Flight.id)))
    except SQLAlchemyError as exc:
        raise DependencyError("database error", origin="database") from exc


def add_seats(session: Session, flight_id: int, layout: SeatLayout = DEFAULT_SEAT_LAYOUT) -> List[Seat]:
    """Provision the seat inventory for ``flight_id`` from ``layout``.

    Raises ``NotFound`` for an unknown flight and ``SeatInventoryExists``
    when the flight already owns seats.
    """

    get_flight(session, flight_id)
    try:
        existing = session.scalar(select(func.count(Seat.id)).where(Seat.flight_id == flight_id))
    except SQLAlchemyError as exc:
        raise DependencyError("database error", origin="database") from exc
    if existing:
        raise SeatInventoryExists(f"flight {flight_id} already has {existing} seats")

    seats = [
        Seat(
            flight_id=flight_id,
            seat_number=row.seat_number,
            seat_class=row.seat_class,
            status=row.status,
            price=row.price,
        )
        for row in layout.generate()
    ]
    session.add_all(seats)
    try:
        session.flush()
    except SQLAlchemyError as exc:
        logger.error("Seat insert for flight %s failed: %s", flight_id, exc.__class__.__name__)
        raise DependencyError("database error", origin="database") from exc
    return seats


def create_flight(
    session_factory: sessionmaker[Session],
    details: FlightDetails,
    *,
    layout: SeatLayout = DEFAULT_SEAT_LAYOUT,
) -> Flight:
    """Insert a flight and its seats in one transaction."""

    with session_scope(session_factory) as session:
        flight = add_flight(session, details)
        add_seats(session, flight.id, layout)
    logger.info("Created flight %s with %d seats", flight.id, layout.total_seats)
    return flight


def search_flights(
    session: Session,
    *,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    on_date: Optional[date] = None,
) -> List[Flight]:
    stmt: Select[tuple[Flight]] = select(Flight).order_by(Flight.id)
    if origin:
        stmt = stmt.where(func.lower(Flight.origin) == origin.strip().lower())
    if destination:
        stmt = stmt.where(func.lower(Flight.destination) == destination.strip().lower())
    if on_date:
        stmt = stmt.where(Flight.date == on_date)
    try:
        return list(session.scalars(stmt))
    except SQLAlchemyError as exc:
        raise DependencyError("database error", origin="database") from exc


def list_seats(session: Session, flight_id: int) -> List[Seat]:
    get_flight(session, flight_id)
    try:
        return list(
            session.scalars(select(Seat).where(Seat.flight_id == flight_id).order_by(Seat.seat_number))
        )
    except SQLAlchemyError as exc:
        raise DependencyError("database error", origin="database") from exc
