"""
Lock stage: close picking once a round's deadline has passed.

The round moves upcoming -> locked through a compare-and-set, so of two
racing invocations exactly one sees an affected row. Only that winner
back-fills forfeits: pending entries without a pick, plus an entry for
every active member who never picked at all.

The forfeit back-fill runs in its own SAVEPOINT after the lock. If it
fails, the lock stands and back_fill_forfeits() can simply be run again
later, since it only ever touches entries that are still pending and
members that still have no entry.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from lms.db.models import Entry, Round, to_naive_utc
from lms.db.repository import InsertOutcome, Repository
from lms.statuses import (
    ENTRY_FORFEIT,
    ENTRY_PENDING,
    REASON_MISSED,
    ROUND_LOCKED,
    ROUND_UPCOMING,
)

logger = logging.getLogger(__name__)


class LockStatus(str, enum.Enum):
    LOCKED = "locked"
    ALREADY_LOCKED = "already_locked"
    NOT_DUE = "not_due"
    NOT_UPCOMING = "not_upcoming"


@dataclass
class LockOutcome:
    status: LockStatus
    forfeited: int = 0
    forfeit_error: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.status is LockStatus.LOCKED


def is_due(round_: Round, now: datetime) -> bool:
    """True when picking should close: upcoming and deadline at or before now."""
    if round_.status != ROUND_UPCOMING or round_.pick_deadline_utc is None:
        return False
    return to_naive_utc(round_.pick_deadline_utc) <= to_naive_utc(now)


def lock_round(repo: Repository, round_: Round, now: datetime) -> LockOutcome:
    """Lock ``round_`` if its deadline has passed and back-fill forfeits."""
    now = to_naive_utc(now)
    if round_.status != ROUND_UPCOMING:
        return LockOutcome(LockStatus.NOT_UPCOMING)
    if not is_due(round_, now):
        return LockOutcome(LockStatus.NOT_DUE)

    affected = repo.compare_and_set(round_, ROUND_UPCOMING, ROUND_LOCKED, locked_at=now)
    if affected == 0:
        logger.info("Round %s was already locked by another run", round_.id)
        return LockOutcome(LockStatus.ALREADY_LOCKED)

    logger.info("Locked round %s (number %s)", round_.id, round_.round_number)
    try:
        forfeited = back_fill_forfeits(repo, round_, now)
    except SQLAlchemyError as exc:
        logger.warning("Forfeit back-fill failed for round %s; lock kept: %s", round_.id, exc)
        return LockOutcome(LockStatus.LOCKED, forfeit_error=str(exc))
    return LockOutcome(LockStatus.LOCKED, forfeited=forfeited)


def back_fill_forfeits(repo: Repository, round_: Round, now: datetime) -> int:
    """
    Resolve every missing pick in a locked round to forfeit/missed.

    Returns:
        Number of entries resolved or created as forfeits
    """
    now = to_naive_utc(now)
    session = repo.session
    forfeited_entrants: list[str] = []

    with session.begin_nested():
        for entry in repo.entries_for_round(round_.id, status=ENTRY_PENDING):
            if entry.contestant_id:
                continue
            entrant_id = entry.entrant_id
            if repo.compare_and_set(
                entry,
                ENTRY_PENDING,
                ENTRY_FORFEIT,
                reason=REASON_MISSED,
                resolved_at=now,
            ):
                forfeited_entrants.append(entrant_id)

        for member in repo.active_members_without_entry(round_.competition_id, round_.id):
            placeholder = Entry(
                competition_id=round_.competition_id,
                round_id=round_.id,
                entrant_id=member.entrant_id,
                contestant_id=None,
                status=ENTRY_FORFEIT,
                reason=REASON_MISSED,
                resolved_at=now,
            )
            if repo.insert_if_absent(placeholder) is InsertOutcome.INSERTED:
                forfeited_entrants.append(member.entrant_id)

        repo.deactivate_memberships(round_.competition_id, forfeited_entrants, now)

    if forfeited_entrants:
        logger.info("Round %s: %d entrants forfeited", round_.id, len(forfeited_entrants))
    return len(forfeited_entrants)
