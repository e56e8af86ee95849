"""
Audit ledger — one NDJSON line per provisioning run.

The ledger lives next to the state file (``<state_dir>/audit.ndjson``)
and is only ever appended to. Where current.json answers "what does the
host look like now", the ledger answers "which run changed what".
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

if TYPE_CHECKING:
    from stackconverge.core.engine.pipeline import PipelineReport

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "audit.ndjson"


class AuditEntry(BaseModel):
    """What one run did to the host."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    operation_type: str = "provision"

    domain: str = ""
    app_version: str = ""
    steps_run: list[str] = Field(default_factory=list)

    status: str = ""               # ok, failed, interrupted
    failed_step: str | None = None
    actions_total: int = 0
    actions_changed: int = 0
    actions_satisfied: int = 0
    actions_failed: int = 0
    duration_ms: int = 0

    # "<step> / <action>" for every action that mutated the host
    changes: list[str] = Field(default_factory=list)
    # steps whose handlers the next run owes
    pending_steps: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_report(
        cls,
        report: PipelineReport,
        domain: str = "",
        app_version: str = "",
        duration_ms: int = 0,
    ) -> AuditEntry:
        failure = report.failure
        errors = [failure.outcome.reason] if failure else []
        if report.interrupted:
            errors.append(f"interrupted in step {report.stopped_step}")
        return cls(
            operation_id=report.operation_id,
            domain=domain,
            app_version=app_version,
            steps_run=list(report.steps_run),
            status=report.status,
            failed_step=report.failed_step,
            actions_total=report.total,
            actions_changed=report.changed,
            actions_satisfied=report.satisfied,
            actions_failed=report.failed,
            duration_ms=duration_ms,
            changes=[
                f"{r.step_name} / {r.action_description}"
                for r in report.results
                if r.outcome.is_changed
            ],
            pending_steps=list(report.pending_steps),
            errors=errors,
        )


class AuditWriter:
    """Append and read back the ledger file."""

    def __init__(self, path: Path | None = None, state_dir: Path | None = None):
        if path is None:
            path = (state_dir or Path(".")) / DEFAULT_AUDIT_FILE
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append ``entry``.

        An unwritable ledger is logged, not raised: the host has already
        been changed by the time the entry exists.
        """
        line = entry.model_dump_json() + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Audit entry %s not written: %s", entry.operation_id, e)
            return
        logger.debug("Audit entry written: %s (%s)", entry.operation_id, entry.status)

    def entries(self) -> Iterator[AuditEntry]:
        """Yield entries oldest first, skipping lines that do not parse."""
        if not self._path.is_file():
            return
        try:
            with self._path.open(encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        yield AuditEntry.model_validate_json(line)
                    except ValidationError as e:
                        logger.warning("Skipping corrupt audit line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Audit ledger unreadable: %s", e)

    def read_all(self) -> list[AuditEntry]:
        return list(self.entries())
