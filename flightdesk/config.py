"""Process configuration, built once at startup and passed to components."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .seating import DEFAULT_SEAT_LAYOUT, SeatLayout

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Read-only settings shared by the verifier, store, renderer and mailer."""

    secret_key: str
    database_url: str = "sqlite+pysqlite:///flightdesk.db"
    jwt_algorithm: str = "HS256"
    token_ttl_minutes: int = 60
    bcrypt_rounds: int = 12
    password_length: int = 16
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_timeout: float = 10.0
    mail_from: Optional[str] = None
    mail_max_attempts: int = 3
    mail_retry_backoff: float = 0.5
    request_timeout: float = 30.0
    seat_layout: SeatLayout = field(default_factory=lambda: DEFAULT_SEAT_LAYOUT)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.secret_key:
            raise ValueError("secret_key must not be empty")
        if self.mail_max_attempts < 1:
            raise ValueError("mail_max_attempts must be at least 1")
        if self.password_length < 12:
            raise ValueError("password_length must be at least 12")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``FLIGHTDESK_*`` variables plus the SMTP ones."""

        env = os.environ if environ is None else environ
        secret = env.get("FLIGHTDESK_SECRET_KEY") or env.get("SECRET_KEY", "")
        layout = env.get("FLIGHTDESK_SEAT_LAYOUT")
        return cls(
            secret_key=secret,
            database_url=env.get("FLIGHTDESK_DATABASE_URL", "sqlite+pysqlite:///flightdesk.db"),
            jwt_algorithm=env.get("FLIGHTDESK_JWT_ALGORITHM", "HS256"),
            token_ttl_minutes=int(env.get("FLIGHTDESK_TOKEN_TTL_MINUTES", "60")),
            bcrypt_rounds=int(env.get("FLIGHTDESK_BCRYPT_ROUNDS", "12")),
            password_length=int(env.get("FLIGHTDESK_PASSWORD_LENGTH", "16")),
            smtp_host=env.get("SMTP_HOST", "localhost"),
            smtp_port=int(env.get("SMTP_PORT", "587")),
            smtp_username=env.get("SMTP_USERNAME", ""),
            smtp_password=env.get("SMTP_PASSWORD", ""),
            smtp_use_tls=_env_bool(env.get("SMTP_USE_TLS", "true")),
            smtp_timeout=float(env.get("SMTP_TIMEOUT", "10")),
            mail_from=env.get("FROM_EMAIL") or None,
            mail_max_attempts=int(env.get("FLIGHTDESK_MAIL_MAX_ATTEMPTS", "3")),
            mail_retry_backoff=float(env.get("FLIGHTDESK_MAIL_RETRY_BACKOFF", "0.5")),
            request_timeout=float(env.get("FLIGHTDESK_REQUEST_TIMEOUT", "30")),
            seat_layout=SeatLayout.from_json(layout) if layout else DEFAULT_SEAT_LAYOUT,
            log_level=env.get("FLIGHTDESK_LOG_LEVEL", "INFO"),
        )


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler used by the CLI and the web server."""

    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)


__all__ = ["Settings", "configure_logging"]
