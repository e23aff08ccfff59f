"""Round-lifecycle automation engine (lock -> evaluate -> advance)."""

from lms.engine.advance import AdvanceOutcome, AdvanceStatus, advance_competition
from lms.engine.evaluate import EvalOutcome, EvalStatus, evaluate_round
from lms.engine.gate import AlreadyRan, GateFailed, RunGate, RunToken, bucket_key
from lms.engine.lock import LockOutcome, LockStatus, back_fill_forfeits, lock_round
from lms.engine.orchestrator import Orchestrator, TickResponse, run_tick
from lms.engine.report import RunReport
from lms.engine.results import Err, ErrorKind, Ok, guarded

__all__ = [
    "AdvanceOutcome",
    "AdvanceStatus",
    "AlreadyRan",
    "Err",
    "ErrorKind",
    "EvalOutcome",
    "EvalStatus",
    "GateFailed",
    "LockOutcome",
    "LockStatus",
    "Ok",
    "Orchestrator",
    "RunGate",
    "RunReport",
    "RunToken",
    "TickResponse",
    "advance_competition",
    "back_fill_forfeits",
    "bucket_key",
    "evaluate_round",
    "guarded",
    "lock_round",
    "run_tick",
]
