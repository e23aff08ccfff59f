"""
Run gate: at most one logical tick per scheduling interval.

The wall-clock time is floored to a fixed interval width to build a run
key; a TickRun row carrying that key is inserted under a unique
constraint. The first invocation in an interval wins the insert and gets a
RunToken; every other invocation in the same interval sees AlreadyRan and
does nothing. This replaces any in-process scheduler state: the store's
insert-if-absent is the only coordination.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lms.db.models import TickRun, to_naive_utc, utc_now
from lms.db.repository import InsertOutcome, Repository
from lms.statuses import RUN_ERROR, RUN_OK, RUN_RUNNING

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = timedelta(minutes=5)
_EPOCH = datetime(1970, 1, 1)


def bucket_start(now: datetime, width: timedelta = DEFAULT_BUCKET) -> datetime:
    """Floor ``now`` (as naive UTC) to the start of its interval."""
    moment = to_naive_utc(now)
    width_s = int(width.total_seconds())
    if width_s <= 0:
        raise ValueError("bucket width must be positive")
    elapsed = int((moment - _EPOCH).total_seconds())
    return _EPOCH + timedelta(seconds=elapsed - elapsed % width_s)


def bucket_key(now: datetime, width: timedelta = DEFAULT_BUCKET) -> str:
    """Deterministic run key, e.g. ``2026-10-19T14:05Z``."""
    return bucket_start(now, width).strftime("%Y-%m-%dT%H:%MZ")


@dataclass(frozen=True)
class RunToken:
    """Proof that this invocation owns the current interval."""

    run_id: str
    run_key: str


@dataclass(frozen=True)
class AlreadyRan:
    run_key: str


@dataclass(frozen=True)
class GateFailed:
    run_key: str
    detail: str


AdmitResult = Union[RunToken, AlreadyRan, GateFailed]


class RunGate:
    """Admits or rejects tick invocations using the tick_runs table."""

    def __init__(self, session: Session, width: timedelta = DEFAULT_BUCKET):
        self.session = session
        self.width = width
        self.repo = Repository(session)

    def admit(self, now: datetime) -> AdmitResult:
        run_key = bucket_key(now, self.width)
        run = TickRun(run_key=run_key, status=RUN_RUNNING, started_at=to_naive_utc(now))
        try:
            outcome = self.repo.insert_if_absent(run)
            run_id = run.id if outcome is InsertOutcome.INSERTED else None
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Run gate insert failed for run_key=%s: %s", run_key, exc)
            return GateFailed(run_key=run_key, detail=str(exc))

        if outcome is InsertOutcome.ALREADY_EXISTS:
            logger.info("Tick already ran for run_key=%s", run_key)
            return AlreadyRan(run_key=run_key)

        logger.info("Tick admitted for run_key=%s (run_id=%s)", run_key, run_id)
        return RunToken(run_id=run_id, run_key=run_key)

    def finalize(
        self,
        token: RunToken,
        ok: bool,
        error: Optional[str] = None,
        summary: Optional[dict[str, Any]] = None,
    ) -> None:
        """Record the run's terminal status. Only a still-running record is updated."""
        run = self.session.get(TickRun, token.run_id)
        if run is None:
            raise RuntimeError(f"TickRun not found for run_id={token.run_id}")
        status = RUN_OK if ok else RUN_ERROR
        self.repo.compare_and_set(
            run,
            RUN_RUNNING,
            status,
            completed_at=utc_now(),
            error=error,
            summary_json=summary,
        )
        self.session.commit()
