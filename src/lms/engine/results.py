"""Tagged stage results.

Each stage call is wrapped by guarded(), which turns whatever the stage
returns into ``Ok(value)`` and whatever it raises into ``Err(kind, detail)``.
The orchestrator only ever sees these two shapes, so no exception crosses
the per-competition boundary.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from sqlalchemy.exc import SQLAlchemyError

from lms.errors import ResultSourceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    STORE = "store"
    DATA = "data"
    SOURCE = "source"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: str

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "detail": self.detail}


Result = Union[Ok[T], Err]


def classify(exc: BaseException) -> ErrorKind:
    """Map an exception to the error taxonomy used in run reports."""
    if isinstance(exc, SQLAlchemyError):
        return ErrorKind.STORE
    if isinstance(exc, ResultSourceError):
        return ErrorKind.SOURCE
    if isinstance(exc, (ValueError, LookupError, TypeError)):
        return ErrorKind.DATA
    return ErrorKind.UNEXPECTED


def guarded(stage_name: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
    """Run one stage and capture its outcome as a tagged result."""
    try:
        return Ok(fn(*args, **kwargs))
    except Exception as exc:
        kind = classify(exc)
        logger.exception("Stage %s failed (%s)", stage_name, kind.value)
        return Err(kind, str(exc) or type(exc).__name__)
