"""Shared status vocabularies.

Single source of truth for the lifecycle values stored on competitions,
rounds, fixtures, entries and tick runs.
"""

from __future__ import annotations

# Competition lifecycle.
COMPETITION_UPCOMING = "upcoming"
COMPETITION_ACTIVE = "active"
COMPETITION_FINISHED = "finished"
# Competitions the tick engine still drives forward.
OPEN_COMPETITION_STATUSES: tuple[str, ...] = (COMPETITION_UPCOMING, COMPETITION_ACTIVE)

# Round lifecycle. Status only ever moves forward: upcoming -> locked -> completed.
ROUND_UPCOMING = "upcoming"
ROUND_LOCKED = "locked"
ROUND_COMPLETED = "completed"

# Fixture results.
RESULT_NOT_SET = "not_set"
RESULT_HOME_WIN = "home_win"
RESULT_AWAY_WIN = "away_win"
RESULT_DRAW = "draw"
ALL_FIXTURE_RESULTS: tuple[str, ...] = (
    RESULT_NOT_SET,
    RESULT_HOME_WIN,
    RESULT_AWAY_WIN,
    RESULT_DRAW,
)

# Entry lifecycle.
ENTRY_PENDING = "pending"
ENTRY_SURVIVED = "survived"
ENTRY_ELIMINATED = "eliminated"
ENTRY_FORFEIT = "forfeit"

# Entry resolution reasons. Draws eliminate with reason "loss".
REASON_LOSS = "loss"
REASON_MISSED = "missed"

# Tick run lifecycle.
RUN_RUNNING = "running"
RUN_OK = "ok"
RUN_ERROR = "error"


def is_decided(result: str | None) -> bool:
    """A fixture is decided once its result is anything other than not_set."""
    return bool(result) and result in ALL_FIXTURE_RESULTS and result != RESULT_NOT_SET
