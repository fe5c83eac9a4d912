"""FastAPI application exposing the booking workflows over HTTP."""
from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from io import BytesIO, StringIO
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

import pandas as pd
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session, sessionmaker

from .auth import CredentialVerifier
from .config import Settings
from .database import init_db
from .deadlines import Deadline
from .errors import FlightDeskError
from .flights import FlightDetails, create_flight, get_flight, list_seats, search_flights
from .mail import MailDispatcher
from .models import Flight, Seat, SeatClass
from .passwords import PasswordHasher
from .rendering import TemplateRenderer
from .workflows import BookingDetails, PasswordReset, TicketConfirmation

logger = logging.getLogger(__name__)


class TicketRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    flight_id: int = Field(alias="flightId", gt=0)
    date: dt.date
    price: Decimal = Field(ge=0)
    seat_number: int = Field(alias="seatNumber", gt=0)
    seat_class: SeatClass = Field(alias="seatClass")


class ResetRequest(BaseModel):
    email: str = Field(min_length=3)
    username: str = Field(min_length=1)


class FlightRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    origin: str = Field(alias="from", min_length=1)
    destination: str = Field(alias="to", min_length=1)
    date: dt.date
    duration: str = Field(min_length=1)
    price: Decimal = Field(ge=0)


def _flight_payload(flight: Flight) -> Dict[str, Any]:
    return {
        "flightId": flight.id,
        "from": flight.origin,
        "to": flight.destination,
        "date": flight.date.isoformat(),
        "duration": flight.duration,
        "price": float(flight.price),
        "status": flight.status.value,
    }


def _seat_rows(seats: Iterable[Seat]) -> List[Dict[str, Any]]:
    return [
        {
            "seatNumber": seat.seat_number,
            "class": seat.seat_class.value,
            "status": seat.status.value,
            "price": float(seat.price),
        }
        for seat in seats
    ]


def _error_response(exc: FlightDeskError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "kind": exc.kind},
    )


def _credential_gate(verifier: CredentialVerifier, role: str) -> Callable[..., Optional[str]]:
    """Build a dependency that checks the credential before the body is validated."""

    def require_role(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
        verifier.authorize(authorization, role=role)
        return authorization

    return require_role


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[sessionmaker[Session]] = None,
    renderer: Optional[TemplateRenderer] = None,
    mailer: Optional[MailDispatcher] = None,
    hasher: Optional[PasswordHasher] = None,
) -> FastAPI:
    """Return an application wired to the given collaborators."""

    settings = settings or Settings.from_env()
    session_factory = session_factory or init_db(settings.database_url)
    renderer = renderer or TemplateRenderer()
    mailer = mailer or MailDispatcher.from_settings(settings)
    hasher = hasher or PasswordHasher(settings.bcrypt_rounds)
    verifier = CredentialVerifier(
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
        ttl_minutes=settings.token_ttl_minutes,
    )
    ticket_workflow = TicketConfirmation(verifier, session_factory, renderer, mailer)
    reset_workflow = PasswordReset(
        session_factory,
        hasher,
        renderer,
        mailer,
        password_length=settings.password_length,
    )

    app = FastAPI(title="FlightDesk", description="Flight booking backend")
    app.state.settings = settings
    app.state.verifier = verifier

    @app.exception_handler(FlightDeskError)
    async def handle_domain_error(request: Request, exc: FlightDeskError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"loc": ".".join(str(part) for part in error.get("loc", ())), "msg": error.get("msg", "")}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": "invalid request", "kind": "validation", "details": details},
        )

    @app.post("/tickets/confirm")
    def confirm_ticket(
        payload: TicketRequest,
        authorization: Optional[str] = Depends(_credential_gate(verifier, "user")),
    ) -> Dict[str, Any]:
        booking = BookingDetails(
            flight_id=payload.flight_id,
            date=payload.date,
            price=payload.price,
            seat_number=payload.seat_number,
            seat_class=payload.seat_class,
        )
        result = ticket_workflow.confirm(
            authorization, booking, deadline=Deadline(settings.request_timeout)
        )
        return result.as_dict()

    @app.post("/password/reset")
    def reset_password(payload: ResetRequest) -> Dict[str, Any]:
        result = reset_workflow.reset(
            payload.email, payload.username, deadline=Deadline(settings.request_timeout)
        )
        return result.as_dict()

    @app.post("/flights", dependencies=[Depends(_credential_gate(verifier, "admin"))])
    def add_flight(payload: FlightRequest) -> Dict[str, Any]:
        details = FlightDetails(
            origin=payload.origin,
            destination=payload.destination,
            date=payload.date,
            duration=payload.duration,
            price=payload.price,
        )
        flight = create_flight(session_factory, details, layout=settings.seat_layout)
        return {"success": True, "flightId": flight.id, "seats": settings.seat_layout.total_seats}

    @app.get("/flights")
    def get_flights(
        origin: Optional[str] = Query(None, alias="from"),
        destination: Optional[str] = Query(None, alias="to"),
        date: Optional[dt.date] = Query(None),
    ) -> List[Dict[str, Any]]:
        with session_factory() as session:
            flights = search_flights(session, origin=origin, destination=destination, on_date=date)
            return [_flight_payload(flight) for flight in flights]

    @app.get("/flights/{flight_id}")
    def get_flight_detail(flight_id: int) -> Dict[str, Any]:
        with session_factory() as session:
            return _flight_payload(get_flight(session, flight_id))

    @app.get("/flights/{flight_id}/seats")
    def get_seats(flight_id: int) -> List[Dict[str, Any]]:
        with session_factory() as session:
            return _seat_rows(list_seats(session, flight_id))

    @app.get("/flights/{flight_id}/seats/export/{file_format}")
    def export_seats(flight_id: int, file_format: Literal["csv", "xlsx"]) -> StreamingResponse:
        with session_factory() as session:
            rows = _seat_rows(list_seats(session, flight_id))

        dataframe = pd.DataFrame(rows, columns=["seatNumber", "class", "status", "price"])
        filename = f"flight_{flight_id}_seats.{file_format}"
        headers = {"Content-Disposition": f"attachment; filename=\"{filename}\""}

        if file_format == "csv":
            buffer = StringIO()
            dataframe.to_csv(buffer, index=False)
            buffer.seek(0)
            return StreamingResponse(iter([buffer.getvalue()]), media_type="text/csv", headers=headers)

        buffer = BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            dataframe.to_excel(writer, index=False, sheet_name="Seats")
        buffer.seek(0)
        return StreamingResponse(
            buffer,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers=headers,
        )

    return app


__all__ = ["create_app"]
