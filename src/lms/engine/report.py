"""Structured record of what one tick run did."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class RunReport:
    """
    Actions and errors accumulated while processing competitions.

    Actions are informational (including benign no-ops such as a lost
    compare-and-set); errors are per-competition failures that did not
    stop the run.
    """

    started_at: datetime
    run_key: Optional[str] = None
    processed: int = 0
    actions: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def add_action(
        self,
        competition_id: str,
        step: str,
        round_id: Optional[str] = None,
        **detail: Any,
    ) -> None:
        record: dict[str, Any] = {"competition_id": competition_id, "step": step}
        if round_id is not None:
            record["round_id"] = round_id
        record.update(detail)
        self.actions.append(record)

    def add_error(
        self,
        competition_id: str,
        step: str,
        error: str,
        round_id: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> None:
        record: dict[str, Any] = {"competition_id": competition_id, "step": step, "error": error}
        if round_id is not None:
            record["round_id"] = round_id
        if kind is not None:
            record["kind"] = kind
        self.errors.append(record)

    def steps_for(self, competition_id: str) -> list[str]:
        """Action steps recorded for one competition, in order."""
        return [a["step"] for a in self.actions if a["competition_id"] == competition_id]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_key": self.run_key,
            "started_at": self.started_at.isoformat(),
            "processed": self.processed,
            "actions": list(self.actions),
            "errors": list(self.errors),
        }
