from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from flightdesk.accounts import add_user
from flightdesk.auth import CredentialVerifier
from flightdesk.database import create_session_factory
from flightdesk.errors import (
    DeadlineExceeded,
    DependencyError,
    Forbidden,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from flightdesk.flights import FlightDetails, create_flight
from flightdesk.mail import MailDispatcher, MailError
from flightdesk.models import Base, SeatClass, User
from flightdesk.passwords import PasswordHasher
from flightdesk.rendering import TemplateRenderer
from flightdesk.workflows import BookingDetails, Deadline, PasswordReset, TicketConfirmation

SECRET = "workflow-secret"


class RecordingTransport:
    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.sent = []

    def deliver(self, message, *, timeout=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)
        return f"<{len(self.sent)}@flightdesk.test>"


class CountingRenderer(TemplateRenderer):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def render(self, template_name, data):
        self.calls += 1
        return super().render(template_name, data)


class CountingSessionFactory:
    def __init__(self, session_factory):
        self.session_factory = session_factory
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.session_factory()


def make_session_factory(tmp_path, *, create_tables=True):
    engine, session_factory = create_session_factory(f"sqlite+pysqlite:///{tmp_path / 'workflows.db'}")
    if create_tables:
        Base.metadata.create_all(engine)
    return session_factory


def make_flight(session_factory):
    return create_flight(
        session_factory,
        FlightDetails(
            origin="Kathmandu",
            destination="Pokhara",
            date=date(2025, 5, 1),
            duration="0h 25m",
            price=Decimal("95"),
        ),
    )


def booking(flight_id):
    return BookingDetails(
        flight_id=flight_id,
        date=date(2025, 5, 1),
        price=Decimal("100"),
        seat_number=3,
        seat_class=SeatClass.ECONOMY,
    )


def user_token(role="user"):
    return CredentialVerifier(SECRET).issue(user_id=1, email="ava@example.com", username="Ava", role=role)


def make_ticket_workflow(session_factory, transport=None, renderer=None):
    transport = transport or RecordingTransport()
    renderer = renderer or CountingRenderer()
    workflow = TicketConfirmation(
        CredentialVerifier(SECRET),
        session_factory,
        renderer,
        MailDispatcher(transport, max_attempts=1),
    )
    return workflow, transport, renderer


def test_confirmation_without_credential_touches_nothing(tmp_path):
    sessions = CountingSessionFactory(make_session_factory(tmp_path))
    workflow, transport, renderer = make_ticket_workflow(sessions)

    with pytest.raises(Unauthenticated):
        workflow.confirm(None, booking(1))
    assert sessions.calls == 0
    assert renderer.calls == 0
    assert transport.sent == []


def test_confirmation_rejects_bad_credentials(tmp_path):
    workflow, transport, _ = make_ticket_workflow(make_session_factory(tmp_path))
    forged = CredentialVerifier("other").issue(user_id=1, email="a@example.com", username="a")

    with pytest.raises(Unauthenticated):
        workflow.confirm(forged, booking(1))
    with pytest.raises(Forbidden):
        workflow.confirm(user_token(role="admin"), booking(1))
    assert transport.sent == []


def test_unknown_flight_skips_render_and_mail(tmp_path):
    workflow, transport, renderer = make_ticket_workflow(make_session_factory(tmp_path))

    with pytest.raises(NotFound) as excinfo:
        workflow.confirm(user_token(), booking(999))
    assert excinfo.value.message == "flight not found"
    assert renderer.calls == 0
    assert transport.sent == []


def test_confirmation_sends_rendered_ticket(tmp_path):
    session_factory = make_session_factory(tmp_path)
    flight = make_flight(session_factory)
    workflow, transport, _ = make_ticket_workflow(session_factory)

    result = workflow.confirm(f"Bearer {user_token()}", booking(flight.id))

    assert result.success is True
    assert result.receipt.message_id == "<1@flightdesk.test>"
    assert result.as_dict()["result"]["recipient"] == "ava@example.com"
    [message] = transport.sent
    assert message.to == "ava@example.com"
    assert message.subject == "Ticket Confirmation"
    assert "Kathmandu" in message.body and "Pokhara" in message.body
    assert "Ava" in message.body
    assert "3 (Economy)" in message.body


def test_confirmation_maps_dependency_failures(tmp_path):
    workflow, _, _ = make_ticket_workflow(make_session_factory(tmp_path, create_tables=False))
    with pytest.raises(DependencyError) as excinfo:
        workflow.confirm(user_token(), booking(1))
    assert excinfo.value.message == "database error"

    store = tmp_path / "store"
    store.mkdir()
    session_factory = make_session_factory(store)
    flight = make_flight(session_factory)
    broken_renderer = TemplateRenderer(tmp_path / "missing-templates")
    workflow, transport, _ = make_ticket_workflow(session_factory, renderer=broken_renderer)
    with pytest.raises(DependencyError) as excinfo:
        workflow.confirm(user_token(), booking(flight.id))
    assert excinfo.value.message == "render error"
    assert transport.sent == []

    workflow, _, _ = make_ticket_workflow(
        session_factory, transport=RecordingTransport(fail_with=MailError("recipient refused"))
    )
    with pytest.raises(DependencyError) as excinfo:
        workflow.confirm(user_token(), booking(flight.id))
    assert excinfo.value.message == "recipient refused"
    assert excinfo.value.origin == "mail"


def test_expired_deadline_stops_before_lookup(tmp_path):
    sessions = CountingSessionFactory(make_session_factory(tmp_path))
    workflow, _, _ = make_ticket_workflow(sessions)

    with pytest.raises(DeadlineExceeded):
        workflow.confirm(user_token(), booking(1), deadline=Deadline(0))
    assert sessions.calls == 0


def test_booking_details_validation():
    with pytest.raises(ValidationError):
        BookingDetails(flight_id=0, date=date(2025, 1, 1), price=Decimal("1"), seat_number=1, seat_class="Economy")
    with pytest.raises(ValidationError):
        BookingDetails(flight_id=1, date=date(2025, 1, 1), price=Decimal("1"), seat_number=1, seat_class="Cargo")
    details = BookingDetails(flight_id="4", date=date(2025, 1, 1), price="12.5", seat_number=2, seat_class="Premium")
    assert details.flight_id == 4
    assert details.seat_class is SeatClass.PREMIUM


@pytest.mark.parametrize("price", ["NaN", "Infinity", Decimal("-Infinity")])
def test_booking_details_reject_non_finite_price(price):
    with pytest.raises(ValidationError) as excinfo:
        BookingDetails(flight_id=1, date=date(2025, 1, 1), price=price, seat_number=1, seat_class="Economy")
    assert excinfo.value.message == "price must be a number"


HASHER = PasswordHasher(rounds=4)


def make_reset_workflow(session_factory, transport=None, hasher=HASHER):
    transport = transport or RecordingTransport()
    workflow = PasswordReset(
        session_factory,
        hasher,
        TemplateRenderer(),
        MailDispatcher(transport, max_attempts=1),
    )
    return workflow, transport


def make_user(session_factory, password="Original-Pass-1"):
    with session_factory() as session:
        user = add_user(session, email="ava@example.com", username="ava", password_hash=HASHER.hash(password))
        session.commit()
        return user.id


def stored_hash(session_factory, user_id):
    with session_factory() as session:
        return session.get(User, user_id).password_hash


def mailed_password(message):
    return message.body.split("new password is:")[1].split()[0]


def test_reset_unknown_user(tmp_path):
    session_factory = make_session_factory(tmp_path)
    make_user(session_factory)
    workflow, transport = make_reset_workflow(session_factory)

    with pytest.raises(NotFound) as excinfo:
        workflow.reset("ava@example.com", "someone-else")
    assert excinfo.value.message == "email not found"
    assert transport.sent == []


def test_reset_mails_new_password_once_and_stores_hash(tmp_path):
    session_factory = make_session_factory(tmp_path)
    user_id = make_user(session_factory)
    workflow, transport = make_reset_workflow(session_factory)

    result = workflow.reset("Ava@Example.com", "ava")

    assert result.success is True
    [message] = transport.sent
    assert message.to == "ava@example.com"
    assert message.subtype == "plain"
    password = mailed_password(message)
    assert password not in str(result.as_dict())
    new_hash = stored_hash(session_factory, user_id)
    assert HASHER.verify(password, new_hash)
    assert not HASHER.verify("Original-Pass-1", new_hash)


def test_consecutive_resets_generate_independent_passwords(tmp_path):
    session_factory = make_session_factory(tmp_path)
    user_id = make_user(session_factory)
    workflow, transport = make_reset_workflow(session_factory)

    workflow.reset("ava@example.com", "ava")
    workflow.reset("ava@example.com", "ava")

    first, second = (mailed_password(message) for message in transport.sent)
    assert first != second
    final_hash = stored_hash(session_factory, user_id)
    assert HASHER.verify(second, final_hash)
    assert not HASHER.verify(first, final_hash)


def test_failed_delivery_keeps_old_password(tmp_path):
    session_factory = make_session_factory(tmp_path)
    user_id = make_user(session_factory)
    before = stored_hash(session_factory, user_id)
    workflow, _ = make_reset_workflow(
        session_factory, transport=RecordingTransport(fail_with=MailError("mail transport unavailable"))
    )

    with pytest.raises(DependencyError) as excinfo:
        workflow.reset("ava@example.com", "ava")
    assert excinfo.value.message == "email send error"
    assert stored_hash(session_factory, user_id) == before


def test_hashing_failure_is_reported(tmp_path):
    class RejectingContext:
        def hash(self, secret):
            raise ValueError("password too long")

    hasher = PasswordHasher(rounds=4)
    hasher._context = RejectingContext()
    with pytest.raises(DependencyError) as excinfo:
        hasher.hash("Original-Pass-1")
    assert (excinfo.value.message, excinfo.value.origin) == ("hashing error", "hasher")

    session_factory = make_session_factory(tmp_path)
    user_id = make_user(session_factory)
    before = stored_hash(session_factory, user_id)
    workflow, transport = make_reset_workflow(session_factory, hasher=hasher)

    with pytest.raises(DependencyError) as excinfo:
        workflow.reset("ava@example.com", "ava")
    assert excinfo.value.message == "hashing error"
    assert transport.sent == []
    assert stored_hash(session_factory, user_id) == before


class FlushFailingSession(Session):
    def flush(self, objects=None):
        if self.dirty:
            raise OperationalError("UPDATE users", {}, Exception("disk I/O error"))
        super().flush(objects)


class CommitFailingSession(Session):
    def commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))


def with_session_class(session_factory, session_class):
    return sessionmaker(bind=session_factory.kw["bind"], class_=session_class, expire_on_commit=False)


def test_failed_update_keeps_old_password_and_sends_nothing(tmp_path):
    session_factory = make_session_factory(tmp_path)
    user_id = make_user(session_factory)
    before = stored_hash(session_factory, user_id)
    workflow, transport = make_reset_workflow(with_session_class(session_factory, FlushFailingSession))

    with pytest.raises(DependencyError) as excinfo:
        workflow.reset("ava@example.com", "ava")
    assert (excinfo.value.message, excinfo.value.origin) == ("update error", "database")
    assert transport.sent == []
    assert stored_hash(session_factory, user_id) == before


def test_failed_commit_after_delivery_reports_update_error(tmp_path):
    session_factory = make_session_factory(tmp_path)
    user_id = make_user(session_factory)
    before = stored_hash(session_factory, user_id)
    workflow, transport = make_reset_workflow(with_session_class(session_factory, CommitFailingSession))

    with pytest.raises(DependencyError) as excinfo:
        workflow.reset("ava@example.com", "ava")
    assert excinfo.value.message == "update error"
    assert len(transport.sent) == 1
    assert stored_hash(session_factory, user_id) == before


def test_expired_deadline_stops_before_user_lookup(tmp_path):
    sessions = CountingSessionFactory(make_session_factory(tmp_path))
    workflow, transport = make_reset_workflow(sessions)

    with pytest.raises(DeadlineExceeded):
        workflow.reset("ava@example.com", "ava", deadline=Deadline(0))
    assert sessions.calls == 0
    assert transport.sent == []


def test_reset_lookup_failure_and_validation(tmp_path):
    workflow, _ = make_reset_workflow(make_session_factory(tmp_path, create_tables=False))
    with pytest.raises(DependencyError) as excinfo:
        workflow.reset("ava@example.com", "ava")
    assert excinfo.value.message == "server error"

    with pytest.raises(ValidationError):
        workflow.reset("", "ava")
