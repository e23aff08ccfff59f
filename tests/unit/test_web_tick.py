"""Tests for the /api/tick and /api/health endpoints."""

from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

import lms.web.main as web_main
from lms.config import Settings
from lms.db.models import Round
from lms.statuses import RESULT_HOME_WIN, ROUND_COMPLETED

SECRET = "tick-secret-0123456789"


def _settings(**overrides):
    values = {
        "database_url": "postgresql://service@db.example.test:5432/lms",
        "database_service_key": "k" * 40,
        "tick_secret": SECRET,
        "result_source_enabled": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def configure(session_factory, now, monkeypatch):
    """Point the app at the test store and a fixed clock; returns a settings setter."""
    state = {"settings": _settings()}
    web_main.app.dependency_overrides[web_main.get_config] = lambda: state["settings"]
    web_main.app.dependency_overrides[web_main.get_session_factory_provider] = (
        lambda: (lambda: session_factory)
    )
    monkeypatch.setattr(web_main, "utc_now", lambda: now)

    def _set(**overrides):
        state["settings"] = _settings(**overrides)

    yield _set
    web_main.app.dependency_overrides.clear()


@pytest.fixture
def client(configure):
    return TestClient(web_main.app)


def _auth(secret=SECRET):
    return {"Authorization": f"Bearer {secret}"}


def test_non_get_is_rejected(client):
    resp = client.post("/api/tick", headers=_auth())
    assert resp.status_code == 405
    assert resp.headers["allow"] == "GET"
    assert resp.json()["ok"] is False


def test_missing_credentials_is_401(client):
    resp = client.get("/api/tick")
    assert resp.status_code == 401
    body = resp.json()
    assert body["ok"] is False
    assert body["error"] == "Unauthorized"


def test_wrong_secret_is_401(client):
    assert client.get("/api/tick", headers=_auth("nope")).status_code == 401
    assert client.get("/api/tick", params={"key": "nope"}).status_code == 401


def test_unset_secret_is_configuration_error(client, configure):
    configure(tick_secret=None)
    resp = client.get("/api/tick", headers=_auth())
    assert resp.status_code == 500
    assert "TICK_SECRET" in resp.json()["error"]


def test_store_misconfiguration_fails_before_running(client, configure, session_factory):
    configure(database_service_key="short")
    resp = client.get("/api/tick", headers=_auth())

    assert resp.status_code == 500
    body = resp.json()
    assert body["env_check"] is False
    assert "DATABASE_SERVICE_KEY" in body["error"]
    assert body["run_key"] is None


def test_authorized_tick_runs_and_reports(client, seed, session_factory):
    with session_factory() as session:
        seeded = seed(
            session,
            fixtures=[("ARS", "CHE", RESULT_HOME_WIN), ("LIV", "MUN", RESULT_HOME_WIN)],
            members=["a", "b"],
            picks={"a": "ARS", "b": "LIV"},
        )

    resp = client.get("/api/tick", headers=_auth())

    assert resp.status_code == 200
    assert resp.headers["cache-control"] == "no-store"
    body = resp.json()
    assert body["ok"] is True
    assert body["env_check"] is True
    assert body["db_connection_check"] is True
    assert body["run_key"] == "2026-10-19T12:00Z"
    assert body["processed_leagues"] == 1
    assert [a["step"] for a in body["actions"]] == ["lock", "evaluate_complete", "advance"]
    assert "error" not in body

    with session_factory() as session:
        assert session.get(Round, seeded.round_id).status == ROUND_COMPLETED


def test_query_key_and_repeat_call(client):
    first = client.get("/api/tick", params={"key": SECRET})
    second = client.get("/api/tick", headers=_auth())

    assert first.status_code == 200
    assert first.json()["already_ran"] is False
    assert second.status_code == 200
    body = second.json()
    assert body["ok"] is True
    assert body["already_ran"] is True
    assert body["actions"] == []


def test_result_source_opened_only_for_admitted_ticks(client, configure):
    configure(result_source_enabled=True)
    opened = []

    @contextmanager
    def recording_source(config):
        opened.append(config.fpl_base_url)
        yield None

    web_main.app.dependency_overrides[web_main.get_result_source_provider] = lambda: recording_source

    assert client.post("/api/tick", headers=_auth()).status_code == 405
    assert client.get("/api/tick", headers=_auth("nope")).status_code == 401
    assert opened == []

    assert client.get("/api/tick", headers=_auth()).status_code == 200
    assert len(opened) == 1


def test_health_checks_store(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["version"] == "1.0.0"
    assert body["database"]["ok"] is True
