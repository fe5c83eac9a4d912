"""SQLAlchemy models for flights, seats and user accounts."""
from __future__ import annotations

import enum
import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import (
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class FlightStatus(str, enum.Enum):
    AVAILABLE = "Available"
    DELAYED = "Delayed"
    CANCELLED = "Cancelled"


class SeatClass(str, enum.Enum):
    ECONOMY = "Economy"
    PREMIUM = "Premium"
    BUSINESS = "Business"


class SeatStatus(str, enum.Enum):
    AVAILABLE = "Available"
    BOOKED = "Booked"


def _enum_values(enum_cls: type[enum.Enum]) -> List[str]:
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    pass


class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (CheckConstraint("price >= 0", name="ck_flight_price_non_negative"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    origin: Mapped[str] = mapped_column(String(80), nullable=False)
    destination: Mapped[str] = mapped_column(String(80), nullable=False)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    duration: Mapped[str] = mapped_column(String(20), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[FlightStatus] = mapped_column(
        Enum(FlightStatus, name="flight_status", values_callable=_enum_values),
        default=FlightStatus.AVAILABLE,
        nullable=False,
    )

    seats: Mapped[List["Seat"]] = relationship(
        back_populates="flight", cascade="all, delete-orphan", order_by="Seat.seat_number"
    )


class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (
        UniqueConstraint("flight_id", "seat_number", name="uq_flight_seat_number"),
        CheckConstraint("seat_number > 0", name="ck_seat_number_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    flight_id: Mapped[int] = mapped_column(ForeignKey("flights.id", ondelete="CASCADE"), nullable=False)
    seat_number: Mapped[int] = mapped_column(Integer, nullable=False)
    seat_class: Mapped[SeatClass] = mapped_column(
        Enum(SeatClass, name="seat_class", values_callable=_enum_values), nullable=False
    )
    status: Mapped[SeatStatus] = mapped_column(
        Enum(SeatStatus, name="seat_status", values_callable=_enum_values),
        default=SeatStatus.AVAILABLE,
        nullable=False,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    flight: Mapped[Flight] = relationship(back_populates="seats")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(120), nullable=False)
    username: Mapped[str] = mapped_column(String(60), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)
