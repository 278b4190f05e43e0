"""Engine construction, the process-wide session factory and FastAPI session dependency."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from jobtrack.config import AppConfig
from jobtrack.models import Base

logger = structlog.get_logger(__name__)

_IN_MEMORY_SQLITE = {"sqlite://", "sqlite:///:memory:"}

_SessionLocal: sessionmaker[Session] | None = None


def _configure_sqlite(dbapi_conn: Any, _connection_record: object) -> None:
    # WAL lets the API read while scan workers write.
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine for *database_url* and make sure every table exists.

    SQLite connections are shared with scan worker threads, so the
    same-thread check is disabled; an in-memory database is pinned to a
    single connection or each thread would see its own empty database.
    """
    kwargs: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    if database_url in _IN_MEMORY_SQLITE:
        kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    if is_sqlite and database_url not in _IN_MEMORY_SQLITE:
        event.listen(engine, "connect", _configure_sqlite)

    Base.metadata.create_all(bind=engine)
    return engine


def init_db(config: AppConfig) -> sessionmaker[Session]:
    """Build the engine from config and install the process-wide session factory."""
    global _SessionLocal

    engine = build_engine(config.database_url)
    _SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    logger.info("database_initialized", url=config.database_url)
    return _SessionLocal


def get_session_factory() -> sessionmaker[Session]:
    """Return the session factory. Raises if init_db() has not been called."""
    if _SessionLocal is None:
        raise RuntimeError("Database not initialized; call init_db() first")
    return _SessionLocal


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on error."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a database session."""
    with session_scope() as session:
        yield session
