"""
Advancement stage: decide what a completed round means for the competition.

- Zero survivors: rollover. The competition stays where it is; nobody
  progresses and no consolation round is created.
- One survivor: that entrant wins and the competition is finished.
- More survivors: round current+1 is created (once) and the competition's
  round pointer moves to it.

The stage is safe to run twice: the next round goes through
insert-if-absent on (competition_id, round_number) and the pointer move is
a compare-and-set on the old value.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select

from lms.db.models import Competition, Entry, Round, to_naive_utc
from lms.db.repository import InsertOutcome, Repository
from lms.errors import ResultSourceError
from lms.statuses import (
    COMPETITION_FINISHED,
    ENTRY_SURVIVED,
    OPEN_COMPETITION_STATUSES,
    ROUND_COMPLETED,
    ROUND_UPCOMING,
)

logger = logging.getLogger(__name__)

# Looks up the external schedule's pick deadline for (competition, round_number)
DeadlineLookup = Callable[[Competition, int], Optional[datetime]]

DEFAULT_FALLBACK_DAYS = 7


class AdvanceStatus(str, enum.Enum):
    ROLLOVER = "rollover"
    WINNER = "winner"
    ADVANCED = "advanced"
    NOT_COMPLETED = "not_completed"


@dataclass
class AdvanceOutcome:
    status: AdvanceStatus
    survivors: int = 0
    winner_entrant_id: Optional[str] = None
    next_round: Optional[int] = None
    round_created: bool = False
    pointer_moved: bool = False
    deadline: Optional[datetime] = None
    deadline_source: Optional[str] = None


def next_round_deadline(
    competition: Competition,
    round_number: int,
    now: datetime,
    deadline_for: Optional[DeadlineLookup] = None,
    fallback_days: int = DEFAULT_FALLBACK_DAYS,
) -> tuple[datetime, str]:
    """
    Pick deadline for a new round and where it came from.

    Uses the external schedule when available; schedule failures fall back
    to ``now + fallback_days`` instead of blocking advancement.
    """
    if deadline_for is not None:
        try:
            scheduled = deadline_for(competition, round_number)
        except ResultSourceError as exc:
            logger.warning(
                "Schedule lookup failed for competition %s round %d: %s",
                competition.id, round_number, exc,
            )
            scheduled = None
        if scheduled is not None:
            return to_naive_utc(scheduled), "schedule"
    return to_naive_utc(now) + timedelta(days=fallback_days), "fallback"


def advance_competition(
    repo: Repository,
    competition: Competition,
    round_: Round,
    now: datetime,
    deadline_for: Optional[DeadlineLookup] = None,
    fallback_days: int = DEFAULT_FALLBACK_DAYS,
) -> AdvanceOutcome:
    """Apply winner / rollover / advance for a completed round."""
    now = to_naive_utc(now)
    if round_.status != ROUND_COMPLETED:
        return AdvanceOutcome(AdvanceStatus.NOT_COMPLETED)

    survivors = repo.count_entries(round_.id, ENTRY_SURVIVED)

    if survivors == 0:
        logger.info("Competition %s: zero survivors in round %s, rollover", competition.id, round_.round_number)
        return AdvanceOutcome(AdvanceStatus.ROLLOVER)

    if survivors == 1:
        winner_id = repo.session.scalar(
            select(Entry.entrant_id)
            .where(Entry.round_id == round_.id, Entry.status == ENTRY_SURVIVED)
            .limit(1)
        )
        repo.compare_and_set(
            competition,
            OPEN_COMPETITION_STATUSES,
            COMPETITION_FINISHED,
            winner_entrant_id=winner_id,
            finished_at=now,
        )
        logger.info("Competition %s finished; winner %s", competition.id, winner_id)
        return AdvanceOutcome(AdvanceStatus.WINNER, survivors=1, winner_entrant_id=winner_id)

    current = round_.round_number
    next_number = current + 1
    outcome = AdvanceOutcome(AdvanceStatus.ADVANCED, survivors=survivors, next_round=next_number)

    if not repo.round_exists(competition.id, next_number):
        deadline, source = next_round_deadline(
            competition, next_number, now, deadline_for, fallback_days
        )
        created = repo.insert_if_absent(
            Round(
                competition_id=competition.id,
                round_number=next_number,
                status=ROUND_UPCOMING,
                pick_deadline_utc=deadline,
            )
        )
        outcome.round_created = created is InsertOutcome.INSERTED
        if outcome.round_created:
            outcome.deadline = deadline
            outcome.deadline_source = source
            logger.info(
                "Competition %s: created round %d (deadline %s from %s)",
                competition.id, next_number, deadline.isoformat(), source,
            )

    if competition.current_round != next_number:
        outcome.pointer_moved = bool(repo.set_current_round(competition, current, next_number))

    return outcome
