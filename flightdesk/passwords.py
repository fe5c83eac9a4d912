"""Random password generation and slow salted hashing."""
from __future__ import annotations

import secrets
import string

from passlib.context import CryptContext
from passlib.exc import MissingBackendError

from .errors import DependencyError

SYMBOLS = "!@#$%^&*()-_=+"
ALPHABET = string.ascii_letters + string.digits + SYMBOLS
MIN_LENGTH = 12


def generate_password(length: int = 16) -> str:
    """Return a random password with upper, lower, digit and symbol characters."""

    if length < MIN_LENGTH:
        raise ValueError(f"password length must be at least {MIN_LENGTH}")
    while True:
        password = "".join(secrets.choice(ALPHABET) for _ in range(length))
        if (
            any(c.islower() for c in password)
            and any(c.isupper() for c in password)
            and any(c.isdigit() for c in password)
            and any(c in SYMBOLS for c in password)
        ):
            return password


class PasswordHasher:
    """bcrypt hashing through passlib."""

    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        try:
            return self._context.hash(password)
        except (ValueError, TypeError, MissingBackendError) as exc:
            raise DependencyError("hashing error", origin="hasher") from exc

    def verify(self, password: str, hashed: str) -> bool:
        try:
            return self._context.verify(password, hashed)
        except (ValueError, TypeError):
            return False
