"""
Fixture import service: writes result-source fixtures into the database.

For one competition round this:

- resolves each side's Contestant by external team id (creating it the
  first time the team appears in this competition)
- creates or updates the round's Fixture rows by external fixture id
- sets the result ('home_win', 'away_win', 'draw') and winning contestant
  once the source marks the fixture finished with both scores present

A decided fixture is never reset to 'not_set' by a later import, so a
source that temporarily drops a score can't reopen a completed round.

This is the only writer of fixtures; the tick engine just reads them.
Rounds whose competition has no fpl_start_event mapping are skipped.

Usage:
    from lms.services.fixture_import import import_round_fixtures

    with get_session() as session, FplClient() as fpl:
        stats = import_round_fixtures(session, competition, round_, fpl)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from lms.db.models import Competition, Contestant, Fixture, Round
from lms.db.repository import InsertOutcome, Repository
from lms.sources.base import ResultSource, SourceFixture
from lms.statuses import (
    RESULT_AWAY_WIN,
    RESULT_DRAW,
    RESULT_HOME_WIN,
    RESULT_NOT_SET,
    is_decided,
)

logger = logging.getLogger(__name__)


@dataclass
class FixtureImportStats:
    """Statistics from one fixture import."""
    total_fixtures: int = 0
    fixtures_created: int = 0
    fixtures_updated: int = 0
    fixtures_decided: int = 0
    contestants_created: int = 0
    skipped_reason: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    def summary(self) -> str:
        """Return a human-readable summary of import results."""
        if self.skipped_reason:
            return f"Fixture import skipped: {self.skipped_reason}"
        lines = [
            "Fixture import complete:",
            f"  Total fixtures:        {self.total_fixtures}",
            f"  Fixtures created:      {self.fixtures_created}",
            f"  Fixtures updated:      {self.fixtures_updated}",
            f"  Fixtures decided:      {self.fixtures_decided}",
            f"  Contestants created:   {self.contestants_created}",
        ]
        if self.errors:
            lines.append(f"  Errors: {len(self.errors)}")
            for err in self.errors[:5]:
                lines.append(f"    - {err}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "total": self.total_fixtures,
            "created": self.fixtures_created,
            "updated": self.fixtures_updated,
            "decided": self.fixtures_decided,
            "contestants_created": self.contestants_created,
            "skipped_reason": self.skipped_reason,
        }


def result_from_scores(scraped: SourceFixture) -> str:
    """Map a source fixture to a result value; unfinished or scoreless is not_set."""
    if not scraped.finished or scraped.home_score is None or scraped.away_score is None:
        return RESULT_NOT_SET
    if scraped.home_score > scraped.away_score:
        return RESULT_HOME_WIN
    if scraped.away_score > scraped.home_score:
        return RESULT_AWAY_WIN
    return RESULT_DRAW


def import_round_fixtures(
    session: Session,
    competition: Competition,
    round_: Round,
    source: ResultSource,
) -> FixtureImportStats:
    """
    Pull fixtures for ``round_`` from ``source`` and upsert them.

    Args:
        session: SQLAlchemy database session (caller commits)
        competition: Competition owning the round
        round_: Round whose fixtures are imported
        source: Result source to read from

    Returns:
        FixtureImportStats with counts of what happened

    Raises:
        ResultSourceError: if the source can't be read
    """
    stats = FixtureImportStats()
    if competition.fpl_start_event is None:
        stats.skipped_reason = "competition has no fpl_start_event"
        return stats

    scraped_fixtures = source.fixtures_for_round(competition, round_.round_number)
    stats.total_fixtures = len(scraped_fixtures)

    repo = Repository(session)
    contestants = _preload_contestants(session, competition.id)
    existing = {
        f.external_id: f
        for f in repo.fixtures_for_round(round_.id)
        if f.external_id is not None
    }

    for scraped in scraped_fixtures:
        home = _resolve_contestant(
            repo, contestants, competition.id,
            scraped.home_external_id, scraped.home_name, scraped.home_short_name, stats,
        )
        away = _resolve_contestant(
            repo, contestants, competition.id,
            scraped.away_external_id, scraped.away_name, scraped.away_short_name, stats,
        )

        result = result_from_scores(scraped)
        winner_id = None
        if result == RESULT_HOME_WIN:
            winner_id = home.id
        elif result == RESULT_AWAY_WIN:
            winner_id = away.id

        fixture = existing.get(scraped.external_id)
        if fixture is None:
            fixture = Fixture(
                round_id=round_.id,
                external_id=scraped.external_id,
                home_contestant_id=home.id,
                away_contestant_id=away.id,
            )
            session.add(fixture)
            existing[scraped.external_id] = fixture
            stats.fixtures_created += 1
        else:
            stats.fixtures_updated += 1

        fixture.kickoff_utc = scraped.kickoff_utc
        fixture.home_score = scraped.home_score
        fixture.away_score = scraped.away_score
        if result != RESULT_NOT_SET:
            fixture.result = result
            fixture.winning_contestant_id = winner_id
        elif not is_decided(fixture.result):
            fixture.result = RESULT_NOT_SET

        if is_decided(fixture.result):
            stats.fixtures_decided += 1

    session.flush()
    logger.info(
        "Competition %s round %d: %s",
        competition.id, round_.round_number, stats.summary().replace("\n", " "),
    )
    return stats


def _preload_contestants(session: Session, competition_id: str) -> dict[str, Contestant]:
    rows = session.scalars(
        select(Contestant).where(Contestant.competition_id == competition_id)
    )
    return {c.external_id: c for c in rows if c.external_id is not None}


def _resolve_contestant(
    repo: Repository,
    contestants: dict[str, Contestant],
    competition_id: str,
    external_id: str,
    name: str,
    short_name: Optional[str],
    stats: FixtureImportStats,
) -> Contestant:
    contestant = contestants.get(external_id)
    if contestant is not None:
        return contestant

    contestant = Contestant(
        competition_id=competition_id,
        external_id=external_id,
        name=name,
        short_name=short_name,
    )
    if repo.insert_if_absent(contestant) is InsertOutcome.INSERTED:
        stats.contestants_created += 1
    else:
        # Created concurrently by another import; use the stored row
        contestant = repo.session.scalars(
            select(Contestant).where(
                Contestant.competition_id == competition_id,
                Contestant.external_id == external_id,
            )
        ).one()
    contestants[external_id] = contestant
    return contestant
