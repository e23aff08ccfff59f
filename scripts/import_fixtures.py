#!/usr/bin/env python3
"""
Import fixtures for a competition round from the FPL API.

Current round of every open competition:
    python scripts/import_fixtures.py

One competition, a specific round:
    python scripts/import_fixtures.py --competition <id> --round 3

Dry run (fetch and map, then roll back):
    python scripts/import_fixtures.py --dry-run
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lms.config import settings
from lms.db import Competition, Repository, get_session
from lms.errors import LmsError
from lms.services import import_round_fixtures
from lms.sources import FplClient

logger = logging.getLogger("import_fixtures")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import FPL fixtures into competition rounds.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--competition",
        default=None,
        help="Competition id (default: every open competition).",
    )
    parser.add_argument(
        "--round",
        type=int,
        default=None,
        help="Round number (default: the competition's current round).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and map fixtures but do not write to the database.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.round is not None and args.competition is None:
        print("ERROR: --round requires --competition")
        return 1

    failures = 0
    try:
        with get_session() as session, FplClient(
            base_url=settings.fpl_base_url, timeout=settings.fpl_timeout_seconds
        ) as fpl:
            repo = Repository(session)
            if args.competition:
                competition = session.get(Competition, args.competition)
                if competition is None:
                    print(f"ERROR: competition {args.competition} not found")
                    return 1
                competitions = [competition]
            else:
                competitions = repo.load_open_competitions()

            for competition in competitions:
                number = args.round if args.round is not None else competition.current_round
                round_ = repo.get_round(competition.id, number) if number is not None else None
                if round_ is None:
                    print(f"{competition.name}: no round {number}, skipping")
                    continue
                try:
                    stats = import_round_fixtures(session, competition, round_, fpl)
                except LmsError as exc:
                    failures += 1
                    logger.error("%s round %s: %s", competition.name, number, exc)
                    continue
                print(f"{competition.name} round {number}")
                print(stats.summary())

            if args.dry_run:
                session.rollback()
                print("(dry run: changes rolled back)")
    except LmsError as exc:
        logger.error("Fixture import failed: %s", exc)
        return 2

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
