from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from flightdesk.database import init_db, session_scope
from flightdesk.errors import NotFound
from flightdesk.flights import FlightDetails, add_flight, add_seats
from flightdesk.models import Flight, Seat, SeatClass, SeatStatus


def make_store(tmp_path):
    return init_db(f"sqlite+pysqlite:///{tmp_path / 'store.db'}")


def test_seat_rows_must_reference_a_flight(tmp_path):
    session_factory = make_store(tmp_path)
    with session_factory() as session:
        session.add(
            Seat(
                flight_id=999,
                seat_number=1,
                seat_class=SeatClass.ECONOMY,
                status=SeatStatus.AVAILABLE,
                price=Decimal("100"),
            )
        )
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()
        assert session.scalar(select(func.count(Seat.id))) == 0


def test_session_scope_rolls_back_on_error(tmp_path):
    session_factory = make_store(tmp_path)
    flight_details = FlightDetails(
        origin="Pokhara", destination="Lhasa", date=date(2025, 9, 1), duration="2h", price=Decimal("300")
    )

    with pytest.raises(NotFound):
        with session_scope(session_factory) as session:
            add_flight(session, flight_details)
            add_seats(session, 12345)

    with session_factory() as session:
        assert session.scalar(select(func.count(Flight.id))) == 0

    with session_scope(session_factory) as session:
        flight = add_flight(session, flight_details)
        add_seats(session, flight.id)

    with session_factory() as session:
        assert session.scalar(select(func.count(Seat.id)).where(Seat.flight_id == flight.id)) == 24
