"""
Database module for LMS.

Provides SQLAlchemy ORM models, session management, and the repository
primitives the tick engine is built on.

Usage:
    from lms.db import get_session, Competition, Round

    with get_session() as session:
        competitions = session.query(Competition).all()
"""

from lms.db.models import (
    Base,
    Competition,
    Contestant,
    Entry,
    Fixture,
    Membership,
    Round,
    TickRun,
)
from lms.db.repository import InsertOutcome, Repository
from lms.db.session import get_engine, get_session, get_session_factory

__all__ = [
    # Base
    "Base",
    # Models
    "Competition",
    "Contestant",
    "Entry",
    "Fixture",
    "Membership",
    "Round",
    "TickRun",
    # Repository
    "InsertOutcome",
    "Repository",
    # Session
    "get_engine",
    "get_session",
    "get_session_factory",
]
