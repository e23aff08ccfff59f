"""Result sources that supply fixtures, results and schedule deadlines."""

from lms.sources.base import ResultSource, SourceFixture
from lms.sources.fpl import FplClient

__all__ = [
    "FplClient",
    "ResultSource",
    "SourceFixture",
]
