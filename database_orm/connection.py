"""
Engine and session management for the trade journal database.

The database URL comes from (in order) an explicit argument, the settings in
app.config (DATABASE_URL or its host/user/password parts, from Parameter
Store or the environment), and finally a local SQLite file.

Sessions are opened from worker threads by the async repository and store,
so SQLite connections are created with check_same_thread disabled.
"""

import os
import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import ConfigError, get_config

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH = "./data/trade_journal.db"

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def resolve_database_url(database_url: Optional[str] = None) -> str:
    """
    Pick the database URL to connect to.

    Args:
        database_url: Explicit URL; wins over configuration

    Returns:
        SQLAlchemy URL string
    """
    if database_url:
        return database_url

    try:
        return get_config().get_database_url()
    except ConfigError as e:
        sqlite_path = os.getenv("DATABASE_PATH", DEFAULT_SQLITE_PATH)
        logger.warning(f"No database configured ({e}), using SQLite at {sqlite_path}")
        return f"sqlite:///{sqlite_path}"


def _engine_options(url: str, echo: bool) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}

    if url.startswith("postgresql"):
        options.update(pool_size=10, max_overflow=20, pool_recycle=3600)
    elif url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False, "timeout": 30}

    return options


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _describe(url: str) -> str:
    # Never log credentials
    return url.split("@")[-1] if "@" in url else url


def init_connection(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create the process-wide engine and session factory.

    Calling it again while an engine exists returns that engine unchanged.

    Args:
        database_url: Optional URL (resolved from configuration if omitted)
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    global _engine, _SessionFactory

    if _engine is not None:
        logger.warning("Engine already initialized, returning existing engine")
        return _engine

    url = resolve_database_url(database_url)
    engine = create_engine(url, **_engine_options(url, echo))
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    _engine = engine
    _SessionFactory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False
    )

    logger.info(f"Database engine initialized: {_describe(url)}")
    return _engine


def get_engine() -> Engine:
    """
    Raises:
        RuntimeError: If init_connection() has not been called
    """
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_connection() first.")
    return _engine


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Transactional session scope: commit on success, roll back on error.

    Example:
        >>> with get_session() as session:
        ...     session.get(Trade, trade_id)

    Raises:
        RuntimeError: If init_connection() has not been called
    """
    if _SessionFactory is None:
        raise RuntimeError("Session factory not initialized. Call init_connection() first.")

    session = _SessionFactory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_connection():
    """Dispose of the engine; init_connection() may be called again afterwards."""
    global _engine, _SessionFactory

    if _engine is None:
        return

    _engine.dispose()
    _engine = None
    _SessionFactory = None
    logger.info("Database connections closed")


def health_check() -> dict:
    """Run SELECT 1 and report {"healthy": bool, "database" | "error": str}."""
    if _engine is None:
        return {"healthy": False, "error": "Engine not initialized"}

    try:
        with get_session() as session:
            session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"healthy": False, "error": str(e)}

    return {"healthy": True, "database": _engine.dialect.name}
