"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lms.db.models import (
    Base,
    Competition,
    Contestant,
    Entry,
    Fixture,
    Membership,
    Round,
)
from lms.statuses import (
    COMPETITION_ACTIVE,
    ENTRY_PENDING,
    RESULT_NOT_SET,
    ROUND_UPCOMING,
)

# Fixed wall clock used across the suite (12:02 falls in the 12:00 bucket)
NOW = datetime(2026, 10, 19, 12, 2, 0)

DEFAULT_TEAMS = ("ARS", "CHE", "LIV", "MUN")


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def test_engine():
    """
    Create a test database engine.

    SQLite in-memory, shared across sessions through a StaticPool. The
    pysqlite driver's own transaction handling is switched off so that
    SAVEPOINTs (used by insert_if_absent and the forfeit back-fill) behave
    like they do on PostgreSQL.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    """A session for one test; closed (and rolled back) afterwards."""
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Data builders
# =============================================================================

@dataclass
class Seeded:
    """Ids of a seeded competition, keyed the way tests refer to them."""

    competition_id: str
    round_id: str
    contestants: dict[str, str] = field(default_factory=dict)
    entries: dict[str, str] = field(default_factory=dict)


def seed_competition(
    session,
    *,
    name: str = "Office League",
    status: str = COMPETITION_ACTIVE,
    round_number: int = 1,
    round_status: str = ROUND_UPCOMING,
    deadline: Optional[datetime] = NOW - timedelta(hours=1),
    teams=DEFAULT_TEAMS,
    fixtures=(),
    members=(),
    picks: Optional[dict] = None,
    resolved: Optional[dict] = None,
    current_round: Optional[int] = -1,
    fpl_start_event: Optional[int] = None,
) -> Seeded:
    """
    Build one competition with a single round and commit it.

    Args:
        fixtures: (home, away, result) tuples using team short names
        members: Entrant ids with an active membership
        picks: entrant id -> team short name (or None) for pending entries
        resolved: entrant id -> (status, reason) for already-resolved entries
        current_round: Round pointer; -1 means "the seeded round"
    """
    competition = Competition(
        name=name,
        status=status,
        current_round=round_number if current_round == -1 else current_round,
        fpl_start_event=fpl_start_event,
    )
    session.add(competition)
    session.flush()

    contestants: dict[str, str] = {}
    for short in teams:
        contestant = Contestant(
            competition_id=competition.id,
            name=f"Team {short}",
            short_name=short,
        )
        session.add(contestant)
        session.flush()
        contestants[short] = contestant.id

    round_ = Round(
        competition_id=competition.id,
        round_number=round_number,
        status=round_status,
        pick_deadline_utc=deadline,
    )
    session.add(round_)
    session.flush()

    for home, away, result in fixtures:
        session.add(
            Fixture(
                round_id=round_.id,
                home_contestant_id=contestants[home],
                away_contestant_id=contestants[away],
                result=result or RESULT_NOT_SET,
            )
        )

    for entrant_id in members:
        session.add(Membership(competition_id=competition.id, entrant_id=entrant_id))

    entries: dict[str, str] = {}
    for entrant_id, team in (picks or {}).items():
        entry = Entry(
            competition_id=competition.id,
            round_id=round_.id,
            entrant_id=entrant_id,
            contestant_id=contestants[team] if team else None,
            status=ENTRY_PENDING,
        )
        session.add(entry)
        session.flush()
        entries[entrant_id] = entry.id

    for entrant_id, (entry_status, reason) in (resolved or {}).items():
        entry = Entry(
            competition_id=competition.id,
            round_id=round_.id,
            entrant_id=entrant_id,
            status=entry_status,
            reason=reason,
            resolved_at=NOW - timedelta(hours=2),
        )
        session.add(entry)
        session.flush()
        entries[entrant_id] = entry.id

    seeded = Seeded(
        competition_id=competition.id,
        round_id=round_.id,
        contestants=contestants,
        entries=entries,
    )
    session.commit()
    return seeded


@pytest.fixture
def seed():
    return seed_competition
