"""
Tick orchestration: gate the run, then drive every open competition.

For each competition the current round goes through, in order:

    [fixture import] -> lock -> evaluate (if locked) -> advance (if completed)

Each competition runs inside its own failure boundary and its own
transactions: stage results are committed as soon as the stage succeeds,
and any failure rolls back only that competition's uncommitted work before
moving on. Nothing about progress is kept in memory between runs; every
decision is re-derived from what is in the store, which is why a run that
dies halfway is simply picked up by the next one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from time import perf_counter
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lms.config import Settings, settings as default_settings
from lms.db.models import Competition, Round, to_naive_utc, utc_now
from lms.db.repository import Repository
from lms.engine.advance import AdvanceStatus, advance_competition
from lms.engine.evaluate import EvalStatus, evaluate_round
from lms.engine.gate import AlreadyRan, GateFailed, RunGate, RunToken
from lms.engine.lock import LockStatus, back_fill_forfeits, lock_round
from lms.engine.report import RunReport
from lms.engine.results import Err, Result, classify, guarded
from lms.services.fixture_import import import_round_fixtures
from lms.sources.base import ResultSource
from lms.statuses import ROUND_COMPLETED, ROUND_LOCKED, ROUND_UPCOMING

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs lock -> evaluate -> advance for every open competition."""

    def __init__(
        self,
        session: Session,
        now: datetime,
        result_source: Optional[ResultSource] = None,
        fallback_days: int = 7,
    ):
        self.session = session
        self.repo = Repository(session)
        self.now = to_naive_utc(now)
        self.result_source = result_source
        self.fallback_days = fallback_days

    def run(self, report: RunReport) -> RunReport:
        """
        Process all open competitions into ``report``.

        Raises:
            SQLAlchemyError: if the competition list itself can't be loaded.
                Per-competition failures never propagate.
        """
        competition_ids = [c.id for c in self.repo.load_open_competitions()]
        logger.info("Tick processing %d competitions", len(competition_ids))

        for competition_id in competition_ids:
            report.processed += 1
            try:
                self._process_competition(competition_id, report)
            except Exception as exc:
                self.session.rollback()
                logger.exception("Competition %s failed", competition_id)
                report.add_error(
                    competition_id,
                    "competition_error",
                    str(exc) or type(exc).__name__,
                    kind=classify(exc).value,
                )
        return report

    # ------------------------------------------------------------------
    # Per-competition pipeline
    # ------------------------------------------------------------------

    def _process_competition(self, competition_id: str, report: RunReport) -> None:
        competition = self.session.get(Competition, competition_id)
        if competition is None:
            return

        number = competition.current_round
        if number is None:
            report.add_action(competition_id, "skip_no_current_round")
            return

        round_ = self.repo.get_round(competition_id, number)
        if round_ is None:
            report.add_action(competition_id, "round_missing", round_number=number)
            return
        round_id = round_.id

        if self.result_source is not None and round_.status != ROUND_COMPLETED:
            self._import_fixtures(competition, round_, report)

        # 1) Lock
        was_upcoming = round_.status == ROUND_UPCOMING
        locked = self._settle(
            guarded("lock", lock_round, self.repo, round_, self.now),
            report, competition_id, round_id, "lock",
        )
        if locked is None:
            return
        if locked.status is LockStatus.LOCKED:
            report.add_action(competition_id, "lock", round_id, forfeited=locked.forfeited)
            if locked.forfeit_error:
                report.add_error(competition_id, "forfeit", locked.forfeit_error, round_id, kind="store")
        elif locked.status is LockStatus.ALREADY_LOCKED:
            report.add_action(competition_id, "lock_already_applied", round_id)
        elif not was_upcoming and round_.status == ROUND_LOCKED:
            # Retry forfeits that an earlier lock failed to write
            swept = self._settle(
                guarded("forfeit", back_fill_forfeits, self.repo, round_, self.now),
                report, competition_id, round_id, "forfeit",
            )
            if swept:
                report.add_action(competition_id, "forfeit", round_id, forfeited=swept)

        # 2) Evaluate
        if round_.status == ROUND_LOCKED:
            evaluated = self._settle(
                guarded("evaluate", evaluate_round, self.repo, round_, self.now),
                report, competition_id, round_id, "evaluate",
            )
            if evaluated is None:
                return
            if evaluated.status is EvalStatus.FIXTURES_MISSING:
                report.add_action(competition_id, "fixtures_missing", round_id)
            elif evaluated.status is EvalStatus.NOT_RESOLVABLE:
                report.add_action(
                    competition_id, "evaluate_pending", round_id,
                    unresolved=evaluated.unresolved_fixtures,
                )
            elif evaluated.status is EvalStatus.COMPLETED:
                report.add_action(
                    competition_id, "evaluate_complete", round_id,
                    survivors=evaluated.survived, eliminated=evaluated.eliminated,
                )
            elif evaluated.status is EvalStatus.ALREADY_COMPLETED:
                report.add_action(competition_id, "evaluate_already_applied", round_id)

        # 3) Advance
        if round_.status == ROUND_COMPLETED:
            deadline_for = self.result_source.deadline_for_round if self.result_source else None
            advanced = self._settle(
                guarded(
                    "advance", advance_competition, self.repo, competition, round_, self.now,
                    deadline_for=deadline_for, fallback_days=self.fallback_days,
                ),
                report, competition_id, round_id, "advance",
            )
            if advanced is None:
                return
            if advanced.status is AdvanceStatus.ROLLOVER:
                report.add_action(competition_id, "rollover_zero_survivors", round_id)
            elif advanced.status is AdvanceStatus.WINNER:
                report.add_action(
                    competition_id, "winner", round_id,
                    winner_entrant_id=advanced.winner_entrant_id,
                )
            elif advanced.round_created:
                report.add_action(
                    competition_id, "advance", round_id,
                    next_round=advanced.next_round,
                    survivors=advanced.survivors,
                    deadline=advanced.deadline.isoformat() if advanced.deadline else None,
                    deadline_source=advanced.deadline_source,
                )
            elif advanced.pointer_moved:
                report.add_action(
                    competition_id, "current_round_synced", round_id,
                    next_round=advanced.next_round,
                )

    def _import_fixtures(self, competition: Competition, round_: Round, report: RunReport) -> None:
        competition_id, round_id = competition.id, round_.id
        imported = guarded(
            "fixture_import", import_round_fixtures,
            self.session, competition, round_, self.result_source,
        )
        if isinstance(imported, Err):
            # Source outages only leave fixtures unresolved
            self.session.rollback()
            report.add_action(
                competition_id, "fixtures_import_failed", round_id,
                error=imported.detail, kind=imported.kind.value,
            )
            return
        self.session.commit()
        if imported.value.skipped_reason is None:
            report.add_action(competition_id, "fixtures_imported", round_id, **imported.value.to_dict())

    def _settle(
        self,
        result: Result[Any],
        report: RunReport,
        competition_id: str,
        round_id: str,
        step: str,
    ) -> Any:
        """Commit a successful stage or roll back a failed one; return its value or None."""
        if isinstance(result, Err):
            self.session.rollback()
            report.add_error(competition_id, step, result.detail, round_id, kind=result.kind.value)
            return None
        self.session.commit()
        return result.value


# =============================================================================
# Tick entry point
# =============================================================================

@dataclass
class TickResponse:
    """Serialized outcome of one tick invocation (the HTTP response body)."""

    ok: bool
    timestamp: str
    status_code: int = 200
    env_check: bool = True
    db_connection_check: bool = False
    round_count: Optional[int] = None
    duration_ms: int = 0
    processed_leagues: int = 0
    run_key: Optional[str] = None
    already_ran: bool = False
    actions: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ok": self.ok,
            "env_check": self.env_check,
            "db_connection_check": self.db_connection_check,
            "round_count": self.round_count,
            "timestamp": self.timestamp,
            "duration_ms": self.duration_ms,
            "processed_leagues": self.processed_leagues,
            "run_key": self.run_key,
            "already_ran": self.already_ran,
            "actions": self.actions,
            "errors": self.errors,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


def run_tick(
    session_factory: Callable[[], Session],
    now: Optional[datetime] = None,
    *,
    result_source: Optional[ResultSource] = None,
    config: Optional[Settings] = None,
) -> TickResponse:
    """
    Execute one gated tick end to end.

    Args:
        session_factory: Callable returning a new Session
        now: Wall-clock time of the invocation (defaults to current UTC)
        result_source: Optional source used for fixture import and
            next-round deadlines
        config: Settings override (tests); defaults to the global settings

    Returns:
        TickResponse; status_code is 200 for completed or already-ran
        runs and 502 when the store could not be used.
    """
    cfg = config or default_settings
    started = perf_counter()
    now = to_naive_utc(now) if now is not None else utc_now()
    response = TickResponse(ok=False, timestamp=now.isoformat() + "Z")

    def _done(resp: TickResponse) -> TickResponse:
        resp.duration_ms = int((perf_counter() - started) * 1000)
        return resp

    session = session_factory()
    try:
        gate = RunGate(session, width=timedelta(minutes=cfg.tick_bucket_minutes))
        admitted = gate.admit(now)
        response.run_key = admitted.run_key

        if isinstance(admitted, GateFailed):
            response.status_code = 502
            response.error = admitted.detail
            return _done(response)

        response.db_connection_check = True
        if isinstance(admitted, AlreadyRan):
            response.ok = True
            response.already_ran = True
            response.error = f"Already ran for run_key={admitted.run_key}"
            return _done(response)

        report = RunReport(started_at=now, run_key=admitted.run_key)
        try:
            response.round_count = Repository(session).count_rounds()
            Orchestrator(
                session,
                now,
                result_source=result_source,
                fallback_days=cfg.round_fallback_deadline_days,
            ).run(report)
            gate.finalize(admitted, ok=True, summary=report.to_dict())
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Tick %s failed: %s", admitted.run_key, exc)
            _finalize_failed(gate, admitted, str(exc), report)
            response.status_code = 502
            response.db_connection_check = False
            response.error = str(exc)
            response.processed_leagues = report.processed
            response.actions = report.actions
            response.errors = report.errors
            return _done(response)

        response.ok = True
        response.processed_leagues = report.processed
        response.actions = report.actions
        response.errors = report.errors
        logger.info(
            "Tick %s finished: %d competitions, %d actions, %d errors",
            admitted.run_key, report.processed, len(report.actions), len(report.errors),
        )
        return _done(response)
    finally:
        session.close()


def _finalize_failed(gate: RunGate, token: RunToken, error: str, report: RunReport) -> None:
    try:
        gate.finalize(token, ok=False, error=error, summary=report.to_dict())
    except SQLAlchemyError:
        # The run row stays 'running'; the response already reports the failure
        gate.session.rollback()
        logger.exception("Could not mark tick %s as failed", token.run_key)
