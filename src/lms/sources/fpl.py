"""
Fantasy Premier League result source.

Reads the public FPL API:
- /bootstrap-static/ lists gameweeks ("events", with deadlines) and teams
- /fixtures/?event=N lists the fixtures of one gameweek with scores

Rounds map to gameweeks through the competition's fpl_start_event:
round 1 is fpl_start_event, round n is fpl_start_event + n - 1.

The bootstrap payload is large and changes rarely, so each client caches
it for its own lifetime. Any HTTP or payload problem is raised as
ResultSourceError; callers decide whether that matters (for the tick
engine it never does, it just leaves fixtures unresolved).

Usage:
    with FplClient() as fpl:
        fixtures = fpl.fixtures_for_round(competition, 3)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx

from lms.config import settings
from lms.db.models import Competition, to_naive_utc
from lms.errors import ResultSourceError
from lms.sources.base import SourceFixture

logger = logging.getLogger(__name__)

# The API rejects requests without a browser-like user agent
DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 Chrome Safari",
    "Accept": "application/json,text/plain,*/*",
    "Referer": "https://fantasy.premierleague.com/",
}


@dataclass
class FplEvent:
    id: int
    name: str
    deadline_utc: Optional[datetime]
    is_current: bool = False
    is_next: bool = False
    finished: bool = False


@dataclass
class FplTeam:
    id: int
    name: str
    short_name: str


def parse_fpl_time(raw: Optional[str]) -> Optional[datetime]:
    """Parse FPL's ISO timestamps ("2025-08-15T17:30:00Z") to naive UTC."""
    if not raw:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        logger.warning("Unparseable FPL timestamp: %s", raw)
        return None


def event_for_round(competition: Competition, round_number: int) -> Optional[int]:
    """Gameweek that a competition round maps to, or None when unmapped."""
    if competition.fpl_start_event is None:
        return None
    return competition.fpl_start_event + round_number - 1


class FplClient:
    """Synchronous client for the FPL API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = (base_url or settings.fpl_base_url).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout or settings.fpl_timeout_seconds,
            headers=DEFAULT_HEADERS,
        )
        self._bootstrap: Optional[dict[str, Any]] = None

    def __enter__(self) -> "FplClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # ------------------------------------------------------------------
    # Raw API
    # ------------------------------------------------------------------

    def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise ResultSourceError(
                f"FPL request {path} failed: {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ResultSourceError(f"FPL request {path} failed: {e}") from e
        except ValueError as e:
            raise ResultSourceError(f"FPL response for {path} is not JSON") from e

    def bootstrap(self) -> dict[str, Any]:
        if self._bootstrap is None:
            payload = self._get_json("/bootstrap-static/")
            if not isinstance(payload, dict):
                raise ResultSourceError("FPL bootstrap payload is not an object")
            self._bootstrap = payload
        return self._bootstrap

    # ------------------------------------------------------------------
    # Typed views
    # ------------------------------------------------------------------

    def events(self) -> list[FplEvent]:
        raw_events = self.bootstrap().get("events", [])
        try:
            return [
                FplEvent(
                    id=int(raw["id"]),
                    name=str(raw.get("name") or f"Gameweek {raw['id']}"),
                    deadline_utc=parse_fpl_time(raw.get("deadline_time")),
                    is_current=bool(raw.get("is_current")),
                    is_next=bool(raw.get("is_next")),
                    finished=bool(raw.get("finished")),
                )
                for raw in raw_events
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ResultSourceError(f"Malformed FPL events in bootstrap: {e!r}") from e

    def teams(self) -> dict[int, FplTeam]:
        raw_teams = self.bootstrap().get("teams", [])
        try:
            return {
                int(raw["id"]): FplTeam(
                    id=int(raw["id"]),
                    name=str(raw.get("name") or f"Team {raw['id']}"),
                    short_name=str(raw.get("short_name") or raw["id"]),
                )
                for raw in raw_teams
            }
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ResultSourceError(f"Malformed FPL teams in bootstrap: {e!r}") from e

    def deadline_for_event(self, event_id: int) -> Optional[datetime]:
        for event in self.events():
            if event.id == event_id:
                return event.deadline_utc
        return None

    def fixtures_for_event(self, event_id: int) -> list[SourceFixture]:
        payload = self._get_json("/fixtures/", params={"event": event_id})
        if not isinstance(payload, list):
            raise ResultSourceError(f"FPL fixtures payload for event {event_id} is not a list")

        teams = self.teams()
        fixtures: list[SourceFixture] = []
        for raw in payload:
            try:
                home_id = int(raw["team_h"])
                away_id = int(raw["team_a"])
                fixture_id = str(raw["id"])
            except (KeyError, TypeError, ValueError) as e:
                raise ResultSourceError(f"Malformed FPL fixture in event {event_id}: {raw!r}") from e
            home = teams.get(home_id)
            away = teams.get(away_id)
            fixtures.append(
                SourceFixture(
                    external_id=fixture_id,
                    home_external_id=str(home_id),
                    home_name=home.name if home else f"Team {home_id}",
                    home_short_name=home.short_name if home else f"H{home_id}",
                    away_external_id=str(away_id),
                    away_name=away.name if away else f"Team {away_id}",
                    away_short_name=away.short_name if away else f"A{away_id}",
                    kickoff_utc=parse_fpl_time(raw.get("kickoff_time")),
                    finished=bool(raw.get("finished") or raw.get("finished_provisional")),
                    home_score=raw.get("team_h_score"),
                    away_score=raw.get("team_a_score"),
                )
            )
        return fixtures

    # ------------------------------------------------------------------
    # ResultSource interface
    # ------------------------------------------------------------------

    def fixtures_for_round(self, competition: Competition, round_number: int) -> list[SourceFixture]:
        event_id = event_for_round(competition, round_number)
        if event_id is None:
            return []
        return self.fixtures_for_event(event_id)

    def deadline_for_round(self, competition: Competition, round_number: int) -> Optional[datetime]:
        event_id = event_for_round(competition, round_number)
        if event_id is None:
            return None
        return self.deadline_for_event(event_id)
