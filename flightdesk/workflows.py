"""Multi-step business workflows: ticket confirmation and password reset.

Each workflow runs its steps strictly in order and stops at the first
failure, surfacing a ``FlightDeskError`` subclass that identifies the step.
Nothing is written before the step that needs it, and the password reset
only commits the new hash once the mail transport has accepted the message.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .accounts import find_user
from .auth import CredentialVerifier
from .deadlines import Deadline
from .errors import (
    DependencyError,
    FlightDeskError,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from .flights import get_flight
from .mail import MailDispatcher, MailError, MailReceipt
from .models import SeatClass
from .passwords import PasswordHasher, generate_password
from .rendering import TemplateRenderer

logger = logging.getLogger(__name__)

TICKET_TEMPLATE = "ticket.html"
RESET_TEMPLATE = "password_reset.txt"


@dataclass(frozen=True)
class BookingDetails:
    """Caller-supplied booking fields echoed onto the ticket."""

    flight_id: int
    date: date
    price: Decimal
    seat_number: int
    seat_class: SeatClass

    def __post_init__(self) -> None:
        for name, label in (("flight_id", "flightId"), ("seat_number", "seatNumber")):
            try:
                value = int(getattr(self, name))
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"{label} must be a positive integer") from exc
            if value <= 0:
                raise ValidationError(f"{label} must be a positive integer")
            object.__setattr__(self, name, value)
        if not isinstance(self.date, date):
            raise ValidationError("date must be a calendar date")
        try:
            price = Decimal(str(self.price))
        except InvalidOperation as exc:
            raise ValidationError("price must be a number") from exc
        if not price.is_finite():
            raise ValidationError("price must be a number")
        if price < 0:
            raise ValidationError("price must not be negative")
        try:
            seat_class = SeatClass(self.seat_class)
        except ValueError as exc:
            raise ValidationError(f"unknown seat class {self.seat_class!r}") from exc
        object.__setattr__(self, "price", price)
        object.__setattr__(self, "seat_class", seat_class)


@dataclass(frozen=True)
class TicketConfirmationResult:
    success: bool
    receipt: MailReceipt

    def as_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "result": self.receipt.as_dict()}


@dataclass(frozen=True)
class ResetResult:
    success: bool
    message: str
    receipt: MailReceipt

    def as_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message, "result": self.receipt.as_dict()}


class TicketConfirmation:
    """verify credential -> look up flight -> render ticket -> mail it."""

    def __init__(
        self,
        verifier: CredentialVerifier,
        session_factory: sessionmaker[Session],
        renderer: TemplateRenderer,
        mailer: MailDispatcher,
        *,
        required_role: str = "user",
    ) -> None:
        self.verifier = verifier
        self.session_factory = session_factory
        self.renderer = renderer
        self.mailer = mailer
        self.required_role = required_role

    def confirm(
        self,
        credential: Optional[str],
        booking: BookingDetails,
        *,
        deadline: Optional[Deadline] = None,
    ) -> TicketConfirmationResult:
        deadline = deadline or Deadline(None)
        try:
            return self._run(credential, booking, deadline)
        except DependencyError as exc:
            logger.error("Ticket confirmation failed (%s): %s", exc.origin, exc.message)
            raise
        except FlightDeskError as exc:
            logger.warning("Ticket confirmation rejected (%s): %s", exc.kind, exc.message)
            raise

    def _run(self, credential: Optional[str], booking: BookingDetails, deadline: Deadline) -> TicketConfirmationResult:
        claims = self.verifier.authorize(credential, self.required_role)
        if not claims.email:
            raise Unauthenticated("invalid credential")
        name = claims.username or claims.email

        deadline.check("flight lookup")
        with self.session_factory() as session:
            flight = get_flight(session, booking.flight_id)
            record = {
                "id": flight.id,
                "flightDeparture": flight.origin,
                "flightArrival": flight.destination,
                "name": name,
                "email": claims.email,
                "date": booking.date.isoformat(),
                "price": f"{booking.price:.2f}",
                "seatNumber": booking.seat_number,
                "seatClass": booking.seat_class.value,
            }

        deadline.check("render")
        document = self.renderer.render(TICKET_TEMPLATE, record)

        deadline.check("mail")
        try:
            receipt = self.mailer.send(
                claims.email, "Ticket Confirmation", document, deadline=deadline
            )
        except MailError as exc:
            raise DependencyError(str(exc), origin="mail") from exc
        return TicketConfirmationResult(success=True, receipt=receipt)


class PasswordReset:
    """find user -> new password -> hash -> stage update -> mail -> commit."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        hasher: PasswordHasher,
        renderer: TemplateRenderer,
        mailer: MailDispatcher,
        *,
        password_length: int = 16,
        generator: Callable[[int], str] = generate_password,
    ) -> None:
        self.session_factory = session_factory
        self.hasher = hasher
        self.renderer = renderer
        self.mailer = mailer
        self.password_length = password_length
        self._generate = generator

    def reset(self, email: str, username: str, *, deadline: Optional[Deadline] = None) -> ResetResult:
        deadline = deadline or Deadline(None)
        try:
            return self._run(email, username, deadline)
        except DependencyError as exc:
            logger.error("Password reset failed (%s): %s", exc.origin, exc.message)
            raise
        except FlightDeskError as exc:
            logger.warning("Password reset rejected (%s): %s", exc.kind, exc.message)
            raise

    def _run(self, email: str, username: str, deadline: Deadline) -> ResetResult:
        if not email or not email.strip() or not username or not username.strip():
            raise ValidationError("email and username are required")

        deadline.check("user lookup")
        with self.session_factory() as session:
            try:
                user = find_user(session, email=email, username=username)
            except SQLAlchemyError as exc:
                raise DependencyError("server error", origin="database") from exc
            if user is None:
                raise NotFound("email not found")
            user_id = user.id

            password = self._generate(self.password_length)
            deadline.check("hashing")
            hashed = self.hasher.hash(password)

            try:
                user.password_hash = hashed
                session.flush()
            except SQLAlchemyError as exc:
                session.rollback()
                raise DependencyError("update error", origin="database") from exc

            deadline.check("mail")
            body = self.renderer.render(RESET_TEMPLATE, {"username": user.username, "password": password})
            try:
                receipt = self.mailer.send(
                    user.email, "Password Reset", body, html=False, deadline=deadline
                )
            except MailError as exc:
                session.rollback()
                raise DependencyError("email send error", origin="mail") from exc

            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("New password mailed to user %s but the hash was not stored", user_id)
                raise DependencyError("update error", origin="database") from exc

        logger.info("Password reset completed for user %s", user_id)
        return ResetResult(success=True, message="a new password has been sent by email", receipt=receipt)


__all__ = [
    "BookingDetails",
    "Deadline",
    "PasswordReset",
    "ResetResult",
    "TicketConfirmation",
    "TicketConfirmationResult",
]
