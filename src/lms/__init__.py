"""
LMS - Last One Standing competition engine

Entrants pick one team per round; a losing pick or no pick knocks them
out, and the competition runs round by round until one survivor remains.

Main components:
- db: SQLAlchemy models, sessions and the compare-and-set repository
- engine: Tick automation (run gate, lock, evaluate, advance)
- sources: Result sources (Fantasy Premier League API)
- services: Fixture import from a result source
- web: FastAPI trigger and health endpoints
"""

__version__ = "1.0.0"
