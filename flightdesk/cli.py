"""Command line interface for administering the flight booking backend."""
from __future__ import annotations

import argparse
import sys
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from tabulate import tabulate

from .auth import CredentialVerifier
from .config import Settings, configure_logging
from .database import init_db
from .dataset import generate_sample_data
from .errors import FlightDeskError
from .flights import FlightDetails, create_flight, search_flights
from .passwords import PasswordHasher


def _render_flights(rows: List[list]) -> str:
    headers = ["ID", "From", "To", "Date", "Duration", "Price", "Status"]
    return tabulate(rows, headers=headers, tablefmt="github", disable_numparse=True)


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Administer the FlightDesk booking backend.")
    parser.add_argument("--database-url", help="Override FLIGHTDESK_DATABASE_URL.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database tables.")

    add = commands.add_parser("add-flight", help="Insert a flight and provision its seats.")
    add.add_argument("--from", dest="origin", required=True)
    add.add_argument("--to", dest="destination", required=True)
    add.add_argument("--date", type=date.fromisoformat, required=True, help="YYYY-MM-DD")
    add.add_argument("--duration", required=True, help="Free text such as '2h 15m'.")
    add.add_argument("--price", type=Decimal, required=True)

    listing = commands.add_parser("list-flights", help="Show flights as a table.")
    listing.add_argument("--from", dest="origin")
    listing.add_argument("--to", dest="destination")
    listing.add_argument("--date", type=date.fromisoformat)

    token = commands.add_parser("issue-token", help="Mint a bearer token for testing.")
    token.add_argument("--user-id", required=True)
    token.add_argument("--email", required=True)
    token.add_argument("--username", required=True)
    token.add_argument("--role", default="user")

    seed = commands.add_parser("seed", help="Populate the database with sample data.")
    seed.add_argument("--flights", type=int, default=10)
    seed.add_argument("--users", type=int, default=5)

    serve = commands.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser.parse_args(list(argv))


def main(argv: Optional[Iterable[str]] = None, settings: Optional[Settings] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        settings = settings or Settings.from_env()
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level)
    db_url = args.database_url or settings.database_url

    try:
        if args.command == "issue-token":
            verifier = CredentialVerifier(
                settings.secret_key,
                algorithm=settings.jwt_algorithm,
                ttl_minutes=settings.token_ttl_minutes,
            )
            print(verifier.issue(user_id=args.user_id, email=args.email, username=args.username, role=args.role))
            return 0

        if args.command == "serve":  # pragma: no cover - starts a server
            import uvicorn

            from .web import create_app

            uvicorn.run(create_app(settings, session_factory=init_db(db_url)), host=args.host, port=args.port)
            return 0

        session_factory = init_db(db_url)
        if args.command == "init-db":
            print(f"Initialized database at {db_url}")
        elif args.command == "add-flight":
            details = FlightDetails(
                origin=args.origin,
                destination=args.destination,
                date=args.date,
                duration=args.duration,
                price=args.price,
            )
            flight = create_flight(session_factory, details, layout=settings.seat_layout)
            print(f"Created flight {flight.id} with {settings.seat_layout.total_seats} seats")
        elif args.command == "list-flights":
            with session_factory() as session:
                flights = search_flights(
                    session, origin=args.origin, destination=args.destination, on_date=args.date
                )
            rows = [
                [f.id, f.origin, f.destination, f.date.isoformat(), f.duration, f"{f.price:.2f}", f.status.value]
                for f in flights
            ]
            print(_render_flights(rows))
        elif args.command == "seed":
            summary = generate_sample_data(
                session_factory,
                flights=args.flights,
                users=args.users,
                layout=settings.seat_layout,
                hasher=PasswordHasher(settings.bcrypt_rounds),
            )
            print(f"Seeded {summary['flights']} flights, {summary['seats']} seats, {summary['users']} users")
    except FlightDeskError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
