"""
HTTP surface for the tick engine.

- GET /api/tick    run one gated tick (scheduler trigger)
- GET /api/health  liveness plus a store round-trip

Run locally with:
    uvicorn lms.web.main:app --reload
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from time import perf_counter
from typing import Any, Callable, ContextManager, Iterator, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from lms.config import Settings, get_settings, settings
from lms.db.models import utc_now
from lms.db.session import get_session_factory
from lms.engine.orchestrator import TickResponse, run_tick
from lms.errors import ConfigurationError
from lms.sources.base import ResultSource
from lms.sources.fpl import FplClient
from lms.web.tick_auth import is_authorized

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="LMS Tick")

NO_STORE = {"Cache-Control": "no-store"}
TICK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


# =============================================================================
# Dependencies
# =============================================================================

def get_config() -> Settings:
    return get_settings()


def get_session_factory_provider() -> Callable[[], sessionmaker]:
    """
    Return a callable that builds the session factory.

    The factory itself is created lazily inside the handler so that a
    misconfigured store surfaces as a configuration error response rather
    than a dependency failure.
    """
    return get_session_factory


@contextmanager
def open_result_source(config: Settings) -> Iterator[Optional[ResultSource]]:
    """Yield the configured result source (or None) and close it afterwards."""
    if not config.result_source_enabled:
        yield None
        return
    with FplClient(base_url=config.fpl_base_url, timeout=config.fpl_timeout_seconds) as client:
        yield client


def get_result_source_provider() -> Callable[[Settings], ContextManager[Optional[ResultSource]]]:
    """
    Return a callable that opens the result source.

    The source is only opened once a tick has passed method, auth and
    configuration checks, so refused calls never build an HTTP client.
    """
    return open_result_source


def _tick_json(resp: TickResponse, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(
        content=resp.to_dict(),
        status_code=resp.status_code,
        headers={**NO_STORE, **(headers or {})},
    )


def _refused(status_code: int, error: str, now: datetime, started: float) -> TickResponse:
    return TickResponse(
        ok=False,
        timestamp=now.isoformat() + "Z",
        status_code=status_code,
        env_check=False,
        duration_ms=int((perf_counter() - started) * 1000),
        error=error,
    )


# =============================================================================
# Routes
# =============================================================================

@app.api_route("/api/tick", methods=TICK_METHODS)
def tick(
    request: Request,
    key: Optional[str] = Query(None, description="Pre-shared secret (alternative to bearer token)"),
    authorization: Optional[str] = Header(None),
    config: Settings = Depends(get_config),
    factory_provider: Callable[[], sessionmaker] = Depends(get_session_factory_provider),
    source_provider: Callable[[Settings], ContextManager[Optional[ResultSource]]] = Depends(
        get_result_source_provider
    ),
):
    """
    Run one lock -> evaluate -> advance pass over all open competitions.

    Returns 200 for completed runs (including per-competition errors and
    duplicate invocations within the same interval), 401/405 for refused
    calls, 500 for configuration errors and 502 when the store fails.
    """
    started = perf_counter()
    now = utc_now()

    if request.method != "GET":
        return _tick_json(_refused(405, "Method Not Allowed", now, started), headers={"Allow": "GET"})

    if not config.tick_secret:
        logger.error("Tick refused: TICK_SECRET is not configured")
        return _tick_json(_refused(500, "Configuration error: TICK_SECRET is not set", now, started))

    if not is_authorized(config.tick_secret, authorization, key):
        logger.warning("Tick refused: bad or missing secret")
        return _tick_json(_refused(401, "Unauthorized", now, started))

    problems = config.engine_config_problems()
    if problems:
        logger.error("Tick refused: %s", "; ".join(problems))
        return _tick_json(_refused(500, "Configuration error: " + "; ".join(problems), now, started))

    try:
        session_factory = factory_provider()
    except ConfigurationError as exc:
        logger.error("Tick refused: %s", exc)
        return _tick_json(_refused(500, f"Configuration error: {exc}", now, started))

    with source_provider(config) as result_source:
        resp = run_tick(session_factory, now, result_source=result_source, config=config)
    return _tick_json(resp)


@app.get("/api/health")
def health(
    config: Settings = Depends(get_config),
    factory_provider: Callable[[], sessionmaker] = Depends(get_session_factory_provider),
):
    """Service liveness with a round-trip to the store."""
    database: dict[str, Any] = {"ok": False, "ms": 0}
    t0 = perf_counter()
    try:
        with factory_provider()() as session:
            session.execute(text("SELECT 1"))
        database["ok"] = True
    except (ConfigurationError, SQLAlchemyError) as exc:
        logger.warning("Health check store query failed: %s", exc)
        database["error"] = type(exc).__name__
    database["ms"] = int((perf_counter() - t0) * 1000)

    return JSONResponse(
        content={
            "status": "ok",
            "service": "lms",
            "time": utc_now().isoformat() + "Z",
            "version": config.app_version,
            "database": database,
        },
        headers=NO_STORE,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("lms.web.main:app", host=settings.api_host, port=settings.api_port, reload=True)
