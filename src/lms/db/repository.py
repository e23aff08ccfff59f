"""
Store primitives used by the tick engine.

Every state change the engine makes goes through one of two primitives:

- compare_and_set(): an UPDATE whose WHERE clause re-asserts the expected
  prior status. The affected-row count tells the caller whether it won the
  transition; zero rows means someone else already applied it.
- insert_if_absent(): an INSERT guarded by a unique constraint, run inside a
  SAVEPOINT so a duplicate only rolls back the insert itself.

Neither primitive holds a lock across operations, and neither leaks
store-specific error codes to callers.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.db.models import Base, Competition, Entry, Fixture, Membership, Round
from lms.statuses import OPEN_COMPETITION_STATUSES

logger = logging.getLogger(__name__)

StatusMatch = Union[str, Iterable[str]]


class InsertOutcome(str, enum.Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


class Repository:
    """Typed access to competitions, rounds, fixtures and entries for one session."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Write primitives
    # ------------------------------------------------------------------

    def compare_and_set(
        self,
        instance: Base,
        expected_status: StatusMatch,
        new_status: str,
        **values: Any,
    ) -> int:
        """
        Move ``instance`` to ``new_status`` only if its stored status matches.

        Args:
            instance: Any model with ``id`` and ``status`` columns
            expected_status: Status (or statuses) the row must currently have
            new_status: Status to write
            **values: Extra columns to set in the same UPDATE

        Returns:
            Number of rows affected (0 or 1)
        """
        model = type(instance)
        stmt = (
            update(model)
            .where(model.id == instance.id)
            .where(_status_clause(model, expected_status))
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        affected = self.session.execute(stmt).rowcount or 0
        # Reload from the store on next access; the UPDATE may have lost
        # to a concurrent writer, so the in-memory copy can't be patched.
        self.session.expire(instance)
        return affected

    def set_current_round(self, competition: Competition, expected: Optional[int], new: int) -> int:
        """Move the competition's round pointer from ``expected`` to ``new``."""
        pointer = (
            Competition.current_round.is_(None)
            if expected is None
            else Competition.current_round == expected
        )
        stmt = (
            update(Competition)
            .where(Competition.id == competition.id, pointer)
            .values(current_round=new)
            .execution_options(synchronize_session=False)
        )
        affected = self.session.execute(stmt).rowcount or 0
        self.session.expire(competition)
        return affected

    def insert_if_absent(self, row: Base) -> InsertOutcome:
        """
        Insert ``row`` unless a unique constraint says it already exists.

        The insert runs in a SAVEPOINT so a duplicate leaves the surrounding
        transaction usable.
        """
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError as exc:
            logger.debug("insert_if_absent: %s already exists (%s)", type(row).__name__, exc.orig)
            return InsertOutcome.ALREADY_EXISTS
        return InsertOutcome.INSERTED

    def deactivate_memberships(
        self,
        competition_id: str,
        entrant_ids: Iterable[str],
        when: datetime,
    ) -> int:
        """Mark entrants as knocked out. Already-inactive memberships are left alone."""
        ids = list(entrant_ids)
        if not ids:
            return 0
        stmt = (
            update(Membership)
            .where(
                Membership.competition_id == competition_id,
                Membership.entrant_id.in_(ids),
                Membership.is_active.is_(True),
            )
            .values(is_active=False, eliminated_at=when)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount or 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def load_open_competitions(self) -> list[Competition]:
        """Competitions the engine should drive: not finished, not soft-deleted."""
        stmt = (
            select(Competition)
            .where(
                Competition.status.in_(OPEN_COMPETITION_STATUSES),
                Competition.deleted_at.is_(None),
            )
            .order_by(Competition.created_at, Competition.id)
        )
        return list(self.session.scalars(stmt))

    def get_round(self, competition_id: str, round_number: int) -> Optional[Round]:
        stmt = select(Round).where(
            Round.competition_id == competition_id,
            Round.round_number == round_number,
        )
        return self.session.scalars(stmt).first()

    def round_exists(self, competition_id: str, round_number: int) -> bool:
        stmt = select(func.count(Round.id)).where(
            Round.competition_id == competition_id,
            Round.round_number == round_number,
        )
        return bool(self.session.scalar(stmt))

    def count_rounds(self) -> int:
        return int(self.session.scalar(select(func.count(Round.id))) or 0)

    def fixtures_for_round(self, round_id: str) -> list[Fixture]:
        stmt = select(Fixture).where(Fixture.round_id == round_id).order_by(Fixture.id)
        return list(self.session.scalars(stmt))

    def entries_for_round(self, round_id: str, status: Optional[StatusMatch] = None) -> list[Entry]:
        stmt = select(Entry).where(Entry.round_id == round_id)
        if status is not None:
            stmt = stmt.where(_status_clause(Entry, status))
        return list(self.session.scalars(stmt.order_by(Entry.created_at, Entry.id)))

    def count_entries(self, round_id: str, status: StatusMatch) -> int:
        stmt = select(func.count(Entry.id)).where(
            Entry.round_id == round_id,
            _status_clause(Entry, status),
        )
        return int(self.session.scalar(stmt) or 0)

    def active_members_without_entry(self, competition_id: str, round_id: str) -> list[Membership]:
        """Active members who never created an entry for ``round_id``."""
        has_entry = (
            select(Entry.id)
            .where(Entry.round_id == round_id, Entry.entrant_id == Membership.entrant_id)
            .exists()
        )
        stmt = (
            select(Membership)
            .where(
                Membership.competition_id == competition_id,
                Membership.is_active.is_(True),
                ~has_entry,
            )
            .order_by(Membership.joined_at, Membership.id)
        )
        return list(self.session.scalars(stmt))


def _status_clause(model: type[Base], status: StatusMatch):
    column = model.status
    if isinstance(status, str):
        return column == status
    return column.in_(list(status))
