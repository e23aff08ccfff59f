"""
Common data structures for result sources.

A result source supplies fixtures and results per round and, where it
knows the schedule, pick deadlines. It is read-only from the engine's
point of view: the fixture import step turns SourceFixture records into
Fixture rows, and the evaluation stage only ever reads those rows.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from lms.db.models import Competition


@dataclass
class SourceFixture:
    """
    Standardized fixture data from any result source.

    Identifiers are strings so that ingestion never depends on a source's
    own id types.
    """

    # Unique identifier of the fixture at the source
    external_id: str

    # Home side
    home_external_id: str
    home_name: str

    # Away side
    away_external_id: str
    away_name: str

    home_short_name: Optional[str] = None
    away_short_name: Optional[str] = None

    kickoff_utc: Optional[datetime] = None

    # True once the source considers the result final (or provisionally final)
    finished: bool = False
    home_score: Optional[int] = None
    away_score: Optional[int] = None


class ResultSource(Protocol):
    """Interface the engine and import step expect from a result source."""

    def fixtures_for_round(self, competition: Competition, round_number: int) -> list[SourceFixture]:
        ...

    def deadline_for_round(self, competition: Competition, round_number: int) -> Optional[datetime]:
        ...
