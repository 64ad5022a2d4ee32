"""Database infrastructure for the ledger."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, ContextManager, Iterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ..config import BaseConfig

if TYPE_CHECKING:  # pragma: no cover
    from .notifications import ChangeFeed

SessionFactory = Callable[[], ContextManager[Session]]


def enable_sqlite_foreign_keys(engine: Engine) -> Engine:
    """Turn on FK enforcement for every SQLite connection.

    Cascades and ``SET NULL`` rules live in the schema; SQLite ignores them
    unless the pragma is set per connection.
    """

    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):  # pragma: no cover - driver hook
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def create_db_engine(config: BaseConfig) -> Engine:
    """Create SQLModel engine from configuration."""
    engine_options = config.sqlalchemy_engine_options()
    engine = create_engine(config.DATABASE_URL, **engine_options)
    return enable_sqlite_foreign_keys(engine)


def init_database(engine: Engine) -> None:
    """Initialize database schema."""
    # Import all models to ensure they're registered
    from .. import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


@contextmanager
def session_scope(engine: Engine, feed: Optional["ChangeFeed"] = None) -> Iterator[Session]:
    """Provide a transactional scope around operations."""
    session = Session(engine, expire_on_commit=False)
    if feed is not None:
        feed.attach(session)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_session_factory(engine: Engine, feed: Optional["ChangeFeed"] = None) -> SessionFactory:
    """Create a session factory function.

    Each call returns a context manager that commits on success and rolls
    back on any exception, so a service can group several writes into one
    unit of work.
    """

    def factory():
        """Create a new session scope."""
        return session_scope(engine, feed)

    factory.engine = engine  # type: ignore[attr-defined]
    return factory
