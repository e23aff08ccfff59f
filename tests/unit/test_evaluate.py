"""Unit tests for the evaluation stage."""

from sqlalchemy import select

from lms.db.models import Entry, Fixture, Membership, Round
from lms.db.repository import Repository
from lms.engine.evaluate import EvalStatus, evaluate_round, fixture_winner
from lms.statuses import (
    ENTRY_ELIMINATED,
    ENTRY_FORFEIT,
    ENTRY_PENDING,
    ENTRY_SURVIVED,
    REASON_LOSS,
    REASON_MISSED,
    RESULT_AWAY_WIN,
    RESULT_DRAW,
    RESULT_HOME_WIN,
    RESULT_NOT_SET,
    ROUND_COMPLETED,
    ROUND_LOCKED,
    ROUND_UPCOMING,
)


def _entries(session, round_id):
    rows = session.scalars(select(Entry).where(Entry.round_id == round_id))
    return {e.entrant_id: e for e in rows}


def test_fixture_winner():
    assert fixture_winner(Fixture(result=RESULT_HOME_WIN, home_contestant_id="h", away_contestant_id="a")) == "h"
    assert fixture_winner(Fixture(result=RESULT_AWAY_WIN, home_contestant_id="h", away_contestant_id="a")) == "a"
    assert fixture_winner(Fixture(result=RESULT_DRAW, home_contestant_id="h", away_contestant_id="a")) is None
    assert fixture_winner(Fixture(result=RESULT_HOME_WIN, winning_contestant_id="w")) == "w"


def test_round_not_locked_is_left_alone(db_session, seed, now):
    seeded = seed(db_session, round_status=ROUND_UPCOMING, fixtures=[("ARS", "CHE", RESULT_HOME_WIN)])
    outcome = evaluate_round(Repository(db_session), db_session.get(Round, seeded.round_id), now)
    assert outcome.status is EvalStatus.NOT_LOCKED


def test_no_fixtures_is_a_note(db_session, seed, now):
    seeded = seed(db_session, round_status=ROUND_LOCKED, picks={"a": "ARS"})

    outcome = evaluate_round(Repository(db_session), db_session.get(Round, seeded.round_id), now)
    db_session.commit()

    assert outcome.status is EvalStatus.FIXTURES_MISSING
    assert db_session.get(Round, seeded.round_id).status == ROUND_LOCKED
    assert _entries(db_session, seeded.round_id)["a"].status == ENTRY_PENDING


def test_undecided_fixture_blocks_resolution(db_session, seed, now):
    seeded = seed(
        db_session,
        round_status=ROUND_LOCKED,
        fixtures=[("ARS", "CHE", RESULT_HOME_WIN), ("LIV", "MUN", RESULT_NOT_SET)],
        picks={"a": "ARS", "b": "LIV"},
    )

    outcome = evaluate_round(Repository(db_session), db_session.get(Round, seeded.round_id), now)
    db_session.commit()

    assert outcome.status is EvalStatus.NOT_RESOLVABLE
    assert outcome.fixtures == 2
    assert outcome.unresolved_fixtures == 1
    entries = _entries(db_session, seeded.round_id)
    assert {e.status for e in entries.values()} == {ENTRY_PENDING}
    assert db_session.get(Round, seeded.round_id).status == ROUND_LOCKED


def test_evaluation_resolves_every_pending_entry(db_session, seed, now):
    seeded = seed(
        db_session,
        round_status=ROUND_LOCKED,
        fixtures=[("ARS", "CHE", RESULT_HOME_WIN), ("LIV", "MUN", RESULT_DRAW)],
        members=["a", "b", "c", "d"],
        picks={"a": "ARS", "b": "CHE", "c": "LIV"},
        resolved={"d": (ENTRY_FORFEIT, REASON_MISSED)},
    )

    outcome = evaluate_round(Repository(db_session), db_session.get(Round, seeded.round_id), now)
    db_session.commit()

    assert outcome.status is EvalStatus.COMPLETED
    assert outcome.survived == 1
    assert outcome.eliminated == 2

    entries = _entries(db_session, seeded.round_id)
    assert entries["a"].status == ENTRY_SURVIVED
    assert entries["a"].reason is None
    assert entries["b"].status == ENTRY_ELIMINATED
    assert entries["b"].reason == REASON_LOSS
    # A draw has no winner, so backing either side is a loss
    assert entries["c"].status == ENTRY_ELIMINATED
    assert entries["c"].reason == REASON_LOSS
    # Forfeits are never re-evaluated
    assert entries["d"].status == ENTRY_FORFEIT
    assert entries["d"].reason == REASON_MISSED

    round_ = db_session.get(Round, seeded.round_id)
    assert round_.status == ROUND_COMPLETED
    assert round_.completed_at == now

    inactive = set(
        db_session.scalars(
            select(Membership.entrant_id).where(Membership.is_active.is_(False))
        )
    )
    assert inactive == {"b", "c"}


def test_entry_without_pick_is_eliminated(db_session, seed, now):
    seeded = seed(
        db_session,
        round_status=ROUND_LOCKED,
        fixtures=[("ARS", "CHE", RESULT_AWAY_WIN)],
        picks={"a": "CHE", "b": None},
    )

    outcome = evaluate_round(Repository(db_session), db_session.get(Round, seeded.round_id), now)
    db_session.commit()

    assert outcome.status is EvalStatus.COMPLETED
    entries = _entries(db_session, seeded.round_id)
    assert entries["a"].status == ENTRY_SURVIVED
    assert entries["b"].status == ENTRY_ELIMINATED
    assert entries["b"].reason == REASON_LOSS


def test_second_evaluation_changes_nothing(db_session, seed, now):
    seeded = seed(
        db_session,
        round_status=ROUND_LOCKED,
        fixtures=[("ARS", "CHE", RESULT_HOME_WIN)],
        picks={"a": "ARS", "b": "CHE"},
    )
    repo = Repository(db_session)

    first = evaluate_round(repo, db_session.get(Round, seeded.round_id), now)
    db_session.commit()
    second = evaluate_round(repo, db_session.get(Round, seeded.round_id), now)
    db_session.commit()

    assert first.status is EvalStatus.COMPLETED
    assert second.status is EvalStatus.NOT_LOCKED
    entries = _entries(db_session, seeded.round_id)
    assert entries["a"].status == ENTRY_SURVIVED
    assert entries["b"].status == ENTRY_ELIMINATED
