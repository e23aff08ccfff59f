"""Services that write external data into the database."""

from lms.services.fixture_import import FixtureImportStats, import_round_fixtures

__all__ = [
    "FixtureImportStats",
    "import_round_fixtures",
]
