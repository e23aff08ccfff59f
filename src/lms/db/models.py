"""
SQLAlchemy ORM models for LMS.

This module defines all database tables and their relationships.
The schema is built around competitions that progress through numbered
rounds; each round has fixtures (imported from the result source) and one
entry per entrant.

Key design decisions:
- Every row is addressed by a generated string id (uuid4)
- Status columns are plain strings; vocabularies live in lms.statuses
- Uniqueness constraints back the idempotency guarantees of the tick engine:
  one round per (competition, round_number), one entry per (round, entrant),
  one tick run per run_key
- All timestamps are naive UTC

Tables:
- competitions: Elimination contests
- contestants: Teams that can be picked within a competition
- rounds: Numbered stages of a competition with a pick deadline
- fixtures: External matches that decide which contestants win a round
- memberships: Entrants taking part in a competition
- entries: One entrant's pick for one round
- tick_runs: Run-gate records, one per scheduling interval
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from lms.statuses import (
    COMPETITION_UPCOMING,
    ENTRY_PENDING,
    RESULT_NOT_SET,
    ROUND_UPCOMING,
    RUN_RUNNING,
)

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    """Current time as naive UTC, the convention for every timestamp column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


# =============================================================================
# Competition Models
# =============================================================================

class Competition(Base):
    """
    An elimination contest with many entrants and sequential rounds.

    current_round points at the round the tick engine is driving. It is
    only moved forward by the advancement stage; finishing the competition
    also records the winning entrant.
    """
    __tablename__ = "competitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # 'upcoming', 'active', 'finished'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=COMPETITION_UPCOMING)
    current_round: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # External scheduling period (FPL gameweek) that maps to round 1
    fpl_start_event: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    winner_entrant_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    rounds: Mapped[list["Round"]] = relationship(back_populates="competition")

    __table_args__ = (
        Index("idx_competitions_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Competition(id='{self.id}', status='{self.status}', round={self.current_round})>"


class Contestant(Base):
    """A team that entrants can pick. external_id is the result source's team id."""
    __tablename__ = "contestants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    competition_id: Mapped[str] = mapped_column(
        ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    short_name: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    external_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("competition_id", "external_id", name="uq_contestants_external"),
    )

    def __repr__(self) -> str:
        return f"<Contestant(id='{self.id}', name='{self.name}')>"


class Round(Base):
    """
    One numbered stage of a competition.

    Status moves upcoming -> locked -> completed and never backwards.
    The (competition_id, round_number) constraint is what makes next-round
    creation safe to attempt twice.
    """
    __tablename__ = "rounds"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    competition_id: Mapped[str] = mapped_column(
        ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # 'upcoming', 'locked', 'completed'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ROUND_UPCOMING)
    pick_deadline_utc: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    competition: Mapped["Competition"] = relationship(back_populates="rounds")

    __table_args__ = (
        UniqueConstraint("competition_id", "round_number", name="uq_rounds_competition_number"),
        CheckConstraint("round_number >= 1", name="ck_round_number_positive"),
        Index("idx_rounds_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Round(id='{self.id}', number={self.round_number}, status='{self.status}')>"


class Fixture(Base):
    """
    An external match whose outcome decides which contestant wins.

    Written only by the fixture import step. A fixture is decided once
    result is anything other than 'not_set'; a draw has no winner.
    """
    __tablename__ = "fixtures"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    round_id: Mapped[str] = mapped_column(
        ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False
    )
    home_contestant_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("contestants.id"), nullable=True
    )
    away_contestant_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("contestants.id"), nullable=True
    )
    kickoff_utc: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # 'not_set', 'home_win', 'away_win', 'draw'
    result: Mapped[str] = mapped_column(String(20), nullable=False, default=RESULT_NOT_SET)
    winning_contestant_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    home_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    away_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    external_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("round_id", "external_id", name="uq_fixtures_round_external"),
        Index("idx_fixtures_round", "round_id"),
    )

    def __repr__(self) -> str:
        return f"<Fixture(id='{self.id}', result='{self.result}')>"


class Membership(Base):
    """An entrant taking part in a competition. Deactivated on elimination."""
    __tablename__ = "memberships"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    competition_id: Mapped[str] = mapped_column(
        ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    entrant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    eliminated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("competition_id", "entrant_id", name="uq_memberships_entrant"),
    )

    def __repr__(self) -> str:
        return f"<Membership(entrant='{self.entrant_id}', active={self.is_active})>"


class Entry(Base):
    """
    One entrant's pick for one round.

    Created as 'pending' by entrants before the deadline. The tick engine
    resolves it exactly once to 'survived', 'eliminated' or 'forfeit';
    a resolved entry never goes back to pending.
    """
    __tablename__ = "entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    competition_id: Mapped[str] = mapped_column(
        ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    round_id: Mapped[str] = mapped_column(
        ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False
    )
    entrant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    contestant_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    # 'pending', 'survived', 'eliminated', 'forfeit'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ENTRY_PENDING)
    # 'loss', 'missed'; older rows may carry 'draw'
    reason: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("round_id", "entrant_id", name="uq_entries_round_entrant"),
        Index("idx_entries_round_status", "round_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Entry(id='{self.id}', entrant='{self.entrant_id}', status='{self.status}')>"


# =============================================================================
# Operations Models
# =============================================================================

class TickRun(Base):
    """
    Run-gate record for one scheduling interval.

    run_key is the wall-clock time floored to the interval width. Its
    unique constraint is what lets only one invocation per interval do
    any work; the row is finalized with 'ok' or 'error' and never deleted.
    """
    __tablename__ = "tick_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    run_key: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    # 'running', 'ok', 'error'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RUN_RUNNING)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary_json: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        Index("idx_tick_runs_started_at", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<TickRun(run_key='{self.run_key}', status='{self.status}')>"
