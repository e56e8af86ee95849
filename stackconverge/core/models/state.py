"""
HostState — what the last runs did to this host.

Serialized to <state_dir>/current.json after every run, including one
that fails or is interrupted. What to change is always decided by
probing the host; the file only carries the handlers a stopped run
still owes (``pending_steps``, ``pending_run_handlers``). Deleting it
forgets those and nothing else.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepState(BaseModel):
    """Status of one step after the most recent run that reached it."""

    name: str
    status: str = ""  # ok, failed, interrupted
    last_run_at: str | None = None
    actions_changed: int = 0
    actions_satisfied: int = 0


class RunRecord(BaseModel):
    """Summary of the most recent run."""

    operation_id: str = ""
    started_at: str = ""
    ended_at: str = ""
    status: str = ""  # ok, failed, interrupted
    failed_step: str | None = None
    actions_total: int = 0
    actions_changed: int = 0
    actions_satisfied: int = 0
    actions_failed: int = 0


class HostState(BaseModel):
    """Root state model — serialized to <state_dir>/current.json."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Identity ─────────────────────────────────────────────────
    domain: str = ""
    app_name: str = ""
    app_version: str = ""

    # ── Timestamps ───────────────────────────────────────────────
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    # ── Runs ─────────────────────────────────────────────────────
    last_run: RunRecord = Field(default_factory=RunRecord)
    steps: dict[str, StepState] = Field(default_factory=dict)

    # ── Owed handlers ────────────────────────────────────────────
    pending_steps: list[str] = Field(default_factory=list)
    pending_run_handlers: bool = False

    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    def set_step_state(self, name: str, **kwargs: Any) -> None:
        """Update or create a step state entry."""
        if name in self.steps:
            for key, value in kwargs.items():
                setattr(self.steps[name], key, value)
        else:
            self.steps[name] = StepState(name=name, **kwargs)
