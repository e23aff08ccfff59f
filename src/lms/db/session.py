"""
Database session management for LMS.

Provides the SQLAlchemy engine and session factory with connection pooling
configured from config.py. Unlike a module-level engine, both are created
lazily so that importing the web app never needs a working store: the tick
endpoint validates configuration first and only then asks for a session.

Usage:
    # As a context manager (recommended for scripts)
    from lms.db import get_session

    with get_session() as session:
        competitions = session.query(Competition).all()
        # Commits automatically on exit, rolls back on exception

    # As a factory (the tick engine opens one session per run)
    from lms.db import get_session_factory

    factory = get_session_factory()
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from lms.config import settings
from lms.errors import ConfigurationError

logger = logging.getLogger(__name__)


def get_engine() -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool for efficient reuse
    - Echo mode disabled (set LOG_LEVEL=DEBUG for SQL logging)
    - Pre-ping to verify connections before use (handles stale connections)

    Raises:
        ConfigurationError: if the store URL or credential is missing.
    """
    problems = settings.engine_config_problems()
    if problems:
        raise ConfigurationError("; ".join(problems))

    url = settings.store_url()
    kwargs: dict = {
        "pool_pre_ping": True,  # Verify connection is alive before using
        "echo": settings.log_level == "DEBUG",  # Log SQL only in debug mode
    }
    if not url.drivername.startswith("sqlite"):
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow

    logger.debug("Creating engine for %s", url.render_as_string(hide_password=True))
    return create_engine(url, **kwargs)


# Singletons created on first use
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """Session factory bound to the singleton engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            autocommit=False,  # We'll handle commits explicitly
            autoflush=False,  # Don't auto-flush before queries (more control)
            bind=_get_engine(),
        )
    return _session_factory


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
