"""Engine and session management for the relational store."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Tuple

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///flightdesk.db"
SQLITE_BUSY_TIMEOUT = 30.0


def _enforce_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite ships with foreign key checks off per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_session_factory(
    db_url: str = DEFAULT_DATABASE_URL,
    *,
    echo: bool = False,
) -> Tuple[Engine, sessionmaker[Session]]:
    """Return an engine/session factory pair for ``db_url``.

    SQLite connections are shared across the web threadpool, wait on locks
    held by concurrent writers and enforce the seat to flight foreign key.
    """

    is_sqlite = db_url.startswith("sqlite")
    connect_args: Dict[str, Any] = {}
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}

    engine = create_engine(db_url, echo=echo, connect_args=connect_args, pool_pre_ping=True)
    if is_sqlite:
        event.listen(engine, "connect", _enforce_foreign_keys)
    logger.debug("Opened engine for %s", engine.url.render_as_string(hide_password=True))
    return engine, sessionmaker(bind=engine, expire_on_commit=False)


def init_db(db_url: str = DEFAULT_DATABASE_URL, *, echo: bool = False) -> sessionmaker[Session]:
    """Create all tables and return a session factory."""

    engine, session_factory = create_session_factory(db_url, echo=echo)
    Base.metadata.create_all(engine)
    return session_factory


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Commit the session on success, roll it back on any error."""

    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
