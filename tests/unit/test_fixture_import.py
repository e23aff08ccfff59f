"""Unit tests for importing result-source fixtures into rounds."""

from datetime import datetime

from sqlalchemy import select

from lms.db.models import Competition, Contestant, Fixture, Round
from lms.services.fixture_import import import_round_fixtures, result_from_scores
from lms.sources.base import SourceFixture
from lms.statuses import (
    RESULT_AWAY_WIN,
    RESULT_DRAW,
    RESULT_HOME_WIN,
    RESULT_NOT_SET,
    ROUND_LOCKED,
)


class FixedSource:
    def __init__(self, fixtures):
        self.fixtures = fixtures
        self.requested: list[int] = []

    def fixtures_for_round(self, competition, round_number):
        self.requested.append(round_number)
        return list(self.fixtures)

    def deadline_for_round(self, competition, round_number):
        return None


def _fixture(external_id, home, away, finished=False, home_score=None, away_score=None):
    return SourceFixture(
        external_id=external_id,
        home_external_id=home,
        home_name=f"Team {home}",
        home_short_name=f"T{home}",
        away_external_id=away,
        away_name=f"Team {away}",
        away_short_name=f"T{away}",
        kickoff_utc=datetime(2026, 10, 18, 14, 0),
        finished=finished,
        home_score=home_score,
        away_score=away_score,
    )


def _load(session, seeded):
    return (
        session.get(Competition, seeded.competition_id),
        session.get(Round, seeded.round_id),
    )


def test_result_from_scores():
    assert result_from_scores(_fixture("1", "1", "2", True, 2, 1)) == RESULT_HOME_WIN
    assert result_from_scores(_fixture("1", "1", "2", True, 0, 3)) == RESULT_AWAY_WIN
    assert result_from_scores(_fixture("1", "1", "2", True, 1, 1)) == RESULT_DRAW
    assert result_from_scores(_fixture("1", "1", "2", False, 1, 0)) == RESULT_NOT_SET
    assert result_from_scores(_fixture("1", "1", "2", True, None, None)) == RESULT_NOT_SET


def test_skips_competition_without_schedule_mapping(db_session, seed):
    seeded = seed(db_session, teams=(), round_status=ROUND_LOCKED)
    source = FixedSource([_fixture("9", "1", "2")])

    stats = import_round_fixtures(db_session, *_load(db_session, seeded), source)

    assert stats.skipped_reason
    assert source.requested == []
    assert "skipped" in stats.summary()


def test_creates_contestants_and_fixtures(db_session, seed):
    seeded = seed(db_session, teams=(), round_status=ROUND_LOCKED, fpl_start_event=7, round_number=3)
    source = FixedSource([
        _fixture("100", "1", "2", True, 3, 0),
        _fixture("101", "3", "4", True, 1, 1),
        _fixture("102", "5", "1"),
    ])

    stats = import_round_fixtures(db_session, *_load(db_session, seeded), source)
    db_session.commit()

    assert source.requested == [3]
    assert stats.total_fixtures == 3
    assert stats.fixtures_created == 3
    assert stats.contestants_created == 5
    assert stats.fixtures_decided == 2

    contestants = {
        c.external_id: c
        for c in db_session.scalars(
            select(Contestant).where(Contestant.competition_id == seeded.competition_id)
        )
    }
    fixtures = {
        f.external_id: f
        for f in db_session.scalars(select(Fixture).where(Fixture.round_id == seeded.round_id))
    }
    assert fixtures["100"].result == RESULT_HOME_WIN
    assert fixtures["100"].winning_contestant_id == contestants["1"].id
    assert fixtures["101"].result == RESULT_DRAW
    assert fixtures["101"].winning_contestant_id is None
    assert fixtures["102"].result == RESULT_NOT_SET
    assert fixtures["102"].away_contestant_id == contestants["1"].id


def test_reimport_updates_in_place(db_session, seed):
    seeded = seed(db_session, teams=(), round_status=ROUND_LOCKED, fpl_start_event=1)
    import_round_fixtures(
        db_session, *_load(db_session, seeded), FixedSource([_fixture("100", "1", "2")])
    )
    db_session.commit()

    stats = import_round_fixtures(
        db_session,
        *_load(db_session, seeded),
        FixedSource([_fixture("100", "1", "2", True, 0, 2)]),
    )
    db_session.commit()

    assert stats.fixtures_created == 0
    assert stats.fixtures_updated == 1
    assert stats.contestants_created == 0
    fixtures = db_session.scalars(select(Fixture).where(Fixture.round_id == seeded.round_id)).all()
    assert len(fixtures) == 1
    assert fixtures[0].result == RESULT_AWAY_WIN
    assert fixtures[0].away_score == 2


def test_decided_fixture_is_never_reopened(db_session, seed):
    seeded = seed(db_session, teams=(), round_status=ROUND_LOCKED, fpl_start_event=1)
    import_round_fixtures(
        db_session, *_load(db_session, seeded), FixedSource([_fixture("100", "1", "2", True, 1, 0)])
    )
    db_session.commit()

    # Source temporarily drops the score
    import_round_fixtures(
        db_session, *_load(db_session, seeded), FixedSource([_fixture("100", "1", "2")])
    )
    db_session.commit()

    fixture = db_session.scalars(select(Fixture).where(Fixture.round_id == seeded.round_id)).one()
    assert fixture.result == RESULT_HOME_WIN
    assert fixture.winning_contestant_id is not None
