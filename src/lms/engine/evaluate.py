"""
Evaluation stage: resolve a locked round once every fixture is decided.

Rules:
- No fixtures yet means the result source hasn't been imported; that is a
  note, not an error.
- Any fixture still 'not_set' means the round can't be resolved yet.
- A pending entry survives only if its contestant won its fixture. Draws
  have no winner, so both sides' backers go out with reason 'loss'.
  Unknown or missing contestants are eliminated the same way rather than
  failing the stage.
- Entries that are no longer pending (forfeits, or entries resolved by an
  earlier run) are never touched.

Each entry update and the final locked -> completed transition are
compare-and-set writes, so two overlapping evaluations resolve every entry
once and complete the round once.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from lms.db.models import Fixture, Round, to_naive_utc
from lms.db.repository import Repository
from lms.statuses import (
    ENTRY_ELIMINATED,
    ENTRY_PENDING,
    ENTRY_SURVIVED,
    REASON_LOSS,
    RESULT_AWAY_WIN,
    RESULT_HOME_WIN,
    ROUND_COMPLETED,
    ROUND_LOCKED,
    is_decided,
)

logger = logging.getLogger(__name__)


class EvalStatus(str, enum.Enum):
    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    FIXTURES_MISSING = "fixtures_missing"
    NOT_RESOLVABLE = "not_resolvable"
    NOT_LOCKED = "not_locked"


@dataclass
class EvalOutcome:
    status: EvalStatus
    survived: int = 0
    eliminated: int = 0
    fixtures: int = 0
    unresolved_fixtures: int = 0

    @property
    def changed(self) -> bool:
        return self.status is EvalStatus.COMPLETED


def fixture_winner(fixture: Fixture) -> Optional[str]:
    """Winning contestant id of a decided fixture, or None for draws/unknowns."""
    if fixture.winning_contestant_id:
        return fixture.winning_contestant_id
    if fixture.result == RESULT_HOME_WIN:
        return fixture.home_contestant_id
    if fixture.result == RESULT_AWAY_WIN:
        return fixture.away_contestant_id
    return None


def winning_contestants(fixtures: Iterable[Fixture]) -> set[str]:
    winners: set[str] = set()
    for fixture in fixtures:
        winner = fixture_winner(fixture)
        if winner:
            winners.add(winner)
    return winners


def evaluate_round(repo: Repository, round_: Round, now: datetime) -> EvalOutcome:
    """Resolve all pending entries of ``round_`` and mark it completed."""
    now = to_naive_utc(now)
    if round_.status != ROUND_LOCKED:
        return EvalOutcome(EvalStatus.NOT_LOCKED)

    fixtures = repo.fixtures_for_round(round_.id)
    if not fixtures:
        return EvalOutcome(EvalStatus.FIXTURES_MISSING)

    unresolved = [f for f in fixtures if not is_decided(f.result)]
    if unresolved:
        return EvalOutcome(
            EvalStatus.NOT_RESOLVABLE,
            fixtures=len(fixtures),
            unresolved_fixtures=len(unresolved),
        )

    winners = winning_contestants(fixtures)
    survived = 0
    eliminated_entrants: list[str] = []

    for entry in repo.entries_for_round(round_.id, status=ENTRY_PENDING):
        entrant_id = entry.entrant_id
        if entry.contestant_id and entry.contestant_id in winners:
            survived += repo.compare_and_set(
                entry, ENTRY_PENDING, ENTRY_SURVIVED, reason=None, resolved_at=now
            )
        elif repo.compare_and_set(
            entry, ENTRY_PENDING, ENTRY_ELIMINATED, reason=REASON_LOSS, resolved_at=now
        ):
            eliminated_entrants.append(entrant_id)

    repo.deactivate_memberships(round_.competition_id, eliminated_entrants, now)

    affected = repo.compare_and_set(round_, ROUND_LOCKED, ROUND_COMPLETED, completed_at=now)
    status = EvalStatus.COMPLETED if affected else EvalStatus.ALREADY_COMPLETED
    logger.info(
        "Round %s evaluated: %d survived, %d eliminated (%s)",
        round_.id, survived, len(eliminated_entrants), status.value,
    )
    return EvalOutcome(
        status,
        survived=survived,
        eliminated=len(eliminated_entrants),
        fixtures=len(fixtures),
    )
