"""User account lookups used by the password reset workflow."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import User


def add_user(
    session: Session,
    *,
    email: str,
    username: str,
    password_hash: str,
    role: str = "user",
) -> User:
    user = User(email=email.strip().lower(), username=username.strip(), password_hash=password_hash, role=role)
    session.add(user)
    session.flush()
    return user


def find_user(session: Session, *, email: str, username: str) -> Optional[User]:
    """Return the user matching both email and username, if any."""

    stmt = select(User).where(User.email == email.strip().lower(), User.username == username.strip())
    return session.scalars(stmt).first()
