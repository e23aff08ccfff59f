"""Unit tests for tagged stage results, run reports and status helpers."""

from datetime import datetime

from sqlalchemy.exc import OperationalError

from lms.engine.report import RunReport
from lms.engine.results import Err, ErrorKind, Ok, classify, guarded
from lms.errors import ResultSourceError
from lms.statuses import is_decided


def test_guarded_wraps_return_value():
    result = guarded("double", lambda x: x * 2, 21)
    assert isinstance(result, Ok)
    assert result.ok
    assert result.value == 42


def test_guarded_captures_exceptions():
    def explode():
        raise ValueError("bad row")

    result = guarded("explode", explode)
    assert isinstance(result, Err)
    assert not result.ok
    assert result.kind is ErrorKind.DATA
    assert result.to_dict() == {"kind": "data", "detail": "bad row"}


def test_classify():
    assert classify(OperationalError("SELECT 1", {}, Exception("gone"))) is ErrorKind.STORE
    assert classify(ResultSourceError("503")) is ErrorKind.SOURCE
    assert classify(KeyError("x")) is ErrorKind.DATA
    assert classify(RuntimeError("?")) is ErrorKind.UNEXPECTED


def test_run_report_records_actions_and_errors():
    report = RunReport(started_at=datetime(2026, 10, 19, 12, 0), run_key="2026-10-19T12:00Z")
    report.add_action("c1", "lock", "r1", forfeited=2)
    report.add_action("c2", "skip_no_current_round")
    report.add_error("c3", "evaluate", "boom", "r3", kind="unexpected")

    assert report.steps_for("c1") == ["lock"]
    assert report.has_errors
    payload = report.to_dict()
    assert payload["run_key"] == "2026-10-19T12:00Z"
    assert payload["actions"][0] == {
        "competition_id": "c1", "step": "lock", "round_id": "r1", "forfeited": 2,
    }
    assert payload["actions"][1] == {"competition_id": "c2", "step": "skip_no_current_round"}
    assert payload["errors"][0]["kind"] == "unexpected"


def test_is_decided():
    assert not is_decided("not_set")
    assert not is_decided(None)
    assert is_decided("draw")
    assert not is_decided("abandoned")
