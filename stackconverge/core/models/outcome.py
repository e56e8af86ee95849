"""
Outcome and PipelineResult — what happened to each action.

An Outcome is the verdict of one Action.execute() call. A PipelineResult
wraps it with the step and action that produced it; the ordered list of
PipelineResults is the audit trail of a run.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

OutcomeStatus = Literal["already_satisfied", "changed", "failed"]


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    reason: str = ""
    error_type: str | None = None  # PreconditionCheckFailed, MutationFailed

    @property
    def is_satisfied(self) -> bool:
        return self.status == "already_satisfied"

    @property
    def is_changed(self) -> bool:
        return self.status == "changed"

    @property
    def is_failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def already_satisfied(cls, reason: str = "") -> Outcome:
        return cls(status="already_satisfied", reason=reason)

    @classmethod
    def changed(cls, reason: str = "") -> Outcome:
        return cls(status="changed", reason=reason)

    @classmethod
    def failed(cls, reason: str, error_type: str = "MutationFailed") -> Outcome:
        return cls(status="failed", reason=reason, error_type=error_type)


class PipelineResult(BaseModel):
    """One executed action, as recorded in the audit trail."""

    model_config = ConfigDict(frozen=True)

    step_name: str
    action_description: str
    target: str = ""
    outcome: Outcome
    recorded_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0
