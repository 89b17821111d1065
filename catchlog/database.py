"""Engine and session factory for the moderation store.

SQLite (used for local runs and the test suite) does not enforce foreign keys
unless asked to on every connection, so the engine turns them on in a connect
hook. The ``ON DELETE`` rules on warnings, log entries and notifications then
behave the same as on PostgreSQL.
"""
from __future__ import annotations

from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import Settings, get_settings

settings = get_settings()


def is_sqlite_url(database_url: str) -> bool:
    return database_url.strip().lower().startswith("sqlite")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def build_engine(config: Settings) -> Engine:
    """Create the engine for ``config.database_url`` with per-dialect connection setup."""

    if not is_sqlite_url(config.database_url):
        return create_engine(config.database_url, pool_pre_ping=True, future=True)

    sqlite_engine = create_engine(
        config.database_url,
        future=True,
        connect_args={"check_same_thread": False, "timeout": config.sqlite_busy_timeout_seconds},
    )
    event.listen(sqlite_engine, "connect", _enable_sqlite_foreign_keys)
    return sqlite_engine


engine: Engine = build_engine(settings)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
)

Base = declarative_base()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def create_session() -> Session:
    """Session for the sweep task and websocket handlers, closed by the caller."""
    return SessionLocal()


def init_db() -> None:
    """Create the moderation tables that are missing (SQLite and fresh databases)."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "create_session",
    "engine",
    "get_session",
    "init_db",
    "is_sqlite_url",
]
