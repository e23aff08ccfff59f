#!/usr/bin/env python3
"""
Run one tick from the command line (same code path as GET /api/tick).

Normal usage (cron / manual trigger):
    python scripts/run_tick.py

Pretend the wall clock is somewhere else (replaying a missed interval):
    python scripts/run_tick.py --now 2026-09-20T10:05:00Z

Use the FPL API for fixture import and next-round deadlines:
    python scripts/run_tick.py --with-source
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lms.config import settings
from lms.db import get_session_factory
from lms.engine import run_tick
from lms.errors import ConfigurationError
from lms.sources import FplClient

logger = logging.getLogger("run_tick")


def _parse_now(raw: str) -> datetime:
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run one lock/evaluate/advance tick over all open competitions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="ISO-8601 timestamp to use as the invocation time (default: current UTC).",
    )
    parser.add_argument(
        "--with-source",
        action="store_true",
        default=settings.result_source_enabled,
        help="Import fixtures and deadlines from the FPL API during the tick.",
    )
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="Write the tick response to this path on completion.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        session_factory = get_session_factory()
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 2

    if args.with_source:
        with FplClient(base_url=settings.fpl_base_url, timeout=settings.fpl_timeout_seconds) as fpl:
            resp = run_tick(session_factory, args.now, result_source=fpl)
    else:
        resp = run_tick(session_factory, args.now)

    payload = resp.to_dict()
    print(json.dumps(payload, indent=2))

    if args.metrics_json:
        metrics_path = Path(args.metrics_json)
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    return 0 if resp.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
