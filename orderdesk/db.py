"""Engine, session factory and request-scoped sessions."""
from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from orderdesk.config import get_settings
from orderdesk.models import Base

engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None


def _connect_args(database_url: str) -> dict[str, object]:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def init_engine() -> Engine:
    """Build the engine and session factory on first use."""

    global engine, SessionLocal
    if engine is None:
        url = get_settings().database_url
        engine = create_engine(url, echo=False, connect_args=_connect_args(url))
        # Services commit explicitly and keep using rows afterwards.
        SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return engine


def get_engine() -> Engine:
    return engine if engine is not None else init_engine()


def get_sessionmaker() -> sessionmaker[Session]:
    if SessionLocal is None:
        init_engine()
    assert SessionLocal is not None  # for type-checkers
    return SessionLocal


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """Turn on foreign key enforcement for SQLite connections."""

    if not type(dbapi_connection).__module__.startswith("sqlite3"):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_all() -> None:
    Base.metadata.create_all(bind=get_engine())


def close_engine() -> None:
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None


@contextmanager
def session_scope(existing: Session | None = None) -> Iterator[Session]:
    """Yield ``existing`` untouched, or a fresh session closed on exit.

    Background jobs take an optional session so tests can drive them on
    the fixture's session.
    """

    if existing is not None:
        yield existing
        return
    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request."""

    with session_scope() as session:
        yield session


__all__ = [
    "Base",
    "close_engine",
    "create_all",
    "get_db",
    "get_engine",
    "get_sessionmaker",
    "init_engine",
    "session_scope",
]
