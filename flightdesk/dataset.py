"""Utilities to populate the database with sample data for tests and demos."""
from __future__ import annotations

import random
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Sequence

from sqlalchemy.orm import Session, sessionmaker

from .accounts import add_user
from .database import session_scope
from .flights import FlightDetails, create_flight
from .passwords import PasswordHasher
from .seating import DEFAULT_SEAT_LAYOUT, SeatLayout

CITIES: Sequence[str] = (
    "Kathmandu",
    "Delhi",
    "Dubai",
    "London",
    "Singapore",
    "Bangkok",
    "Doha",
    "Tokyo",
)
USERNAMES = ("ava", "noah", "liam", "mia", "lucas", "emma", "ethan", "isabella")


def generate_sample_data(
    session_factory: sessionmaker[Session],
    *,
    flights: int = 10,
    users: int = 5,
    layout: SeatLayout = DEFAULT_SEAT_LAYOUT,
    hasher: PasswordHasher | None = None,
    default_password: str = "ChangeMe-2024!",
) -> Dict[str, int]:
    """Populate the database with deterministic pseudo-random data."""

    rng = random.Random(42)
    today = date.today()
    for _ in range(flights):
        origin, destination = rng.sample(CITIES, 2)
        hours, minutes = rng.randint(1, 12), rng.choice((0, 15, 30, 45))
        create_flight(
            session_factory,
            FlightDetails(
                origin=origin,
                destination=destination,
                date=today + timedelta(days=rng.randint(1, 30)),
                duration=f"{hours}h {minutes}m",
                price=Decimal(rng.choice((120, 180, 220, 350))),
            ),
            layout=layout,
        )

    hasher = hasher or PasswordHasher()
    password_hash = hasher.hash(default_password)
    with session_scope(session_factory) as session:
        for index in range(users):
            add_user(
                session,
                email=f"traveler{index}@example.com",
                username=f"{USERNAMES[index % len(USERNAMES)]}{index}",
                password_hash=password_hash,
            )
    return {"flights": flights, "users": users, "seats": flights * layout.total_seats}
