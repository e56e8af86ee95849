"""
Pipeline — the central provisioning loop.

Runs steps strictly in declared order with fail-fast semantics: the
first failing step halts the run, nothing after it executes, and the
report carries every result produced so far plus the failing step.

There are no retries and no rollback. Every action is independently
idempotent, so recovery is: fix the cause and run the whole pipeline
again. Satisfied targets are skipped and only what failed is retried.

Handlers are the one thing probing cannot recover: a restart triggered
by a config edit has nothing left to trigger it once the edit landed.
A run that stops after changing a step lists that step in
``report.pending_steps``; passing the list to the next run fires the
step's handlers even though nothing changes.

Flow:
    steps → for each step: run actions → collect results → report
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from stackconverge.core.engine.prober import StateProber
from stackconverge.core.engine.step import Step, StepResult
from stackconverge.core.errors import ConfigurationInvalid
from stackconverge.core.models.outcome import PipelineResult
from stackconverge.core.observability.reporter import Reporter, emit

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


@dataclass
class PipelineReport:
    """Result of running a pipeline: the audit trail plus a verdict."""

    operation_id: str = ""
    results: list[PipelineResult] = field(default_factory=list)
    steps_run: list[str] = field(default_factory=list)
    failed_step: str | None = None
    interrupted: bool = False
    # Handlers still owed to the next run
    pending_steps: list[str] = field(default_factory=list)
    pending_run_handlers: bool = False
    started_at: str = field(default_factory=_now_iso)
    ended_at: str = ""

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def changed(self) -> int:
        return sum(1 for r in self.results if r.outcome.is_changed)

    @property
    def satisfied(self) -> int:
        return sum(1 for r in self.results if r.outcome.is_satisfied)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.outcome.is_failed)

    @property
    def ok(self) -> bool:
        return self.failed_step is None and not self.interrupted

    @property
    def status(self) -> str:
        if self.interrupted:
            return "interrupted"
        return "ok" if self.ok else "failed"

    @property
    def stopped_step(self) -> str | None:
        """The step the run stopped in, whether it failed or was interrupted."""
        if self.interrupted and self.steps_run:
            return self.steps_run[-1]
        return self.failed_step

    @property
    def failure(self) -> PipelineResult | None:
        """The result that halted the run, if any."""
        for r in self.results:
            if r.outcome.is_failed:
                return r
        return None

    def results_for(self, step_name: str) -> list[PipelineResult]:
        return [r for r in self.results if r.step_name == step_name]

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "status": self.status,
            "failed_step": self.failed_step,
            "pending_steps": list(self.pending_steps),
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "total": self.total,
            "changed": self.changed,
            "satisfied": self.satisfied,
            "failed": self.failed,
            "steps_run": list(self.steps_run),
            "results": [r.model_dump(mode="json") for r in self.results],
        }


def validate_order(steps: Sequence[Step]) -> None:
    """Check every dependency is declared before the step that needs it.

    Raises:
        ConfigurationInvalid: On duplicate names, unknown dependencies or
            a step ordered before one of its dependencies.
    """
    seen: set[str] = set()
    names = {s.name for s in steps}
    if len(names) != len(steps):
        raise ConfigurationInvalid("Duplicate step names in pipeline")

    for step in steps:
        for dep in step.depends_on:
            if dep not in names:
                raise ConfigurationInvalid(
                    f"Step {step.name!r} depends on unknown step {dep!r}"
                )
            if dep not in seen:
                raise ConfigurationInvalid(
                    f"Step {step.name!r} is ordered before its dependency {dep!r}"
                )
        seen.add(step.name)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"


class Pipeline:
    """Ordered steps executed sequentially, fail-fast."""

    def __init__(
        self,
        steps: Sequence[Step],
        prober: StateProber,
        operation_id: str | None = None,
    ):
        validate_order(steps)
        self.steps = tuple(steps)
        self._prober = prober
        self.operation_id = operation_id or generate_operation_id()
        # The run in progress or last finished; survives an interrupt
        self.report: PipelineReport | None = None

    def run(
        self,
        reporter: Reporter | None = None,
        pending_steps: Sequence[str] = (),
        pending_run_handlers: bool = False,
    ) -> PipelineReport:
        """Run every step; stop at the first failure.

        Args:
            reporter: Receives step starts, results and the final report.
            pending_steps: Steps whose handlers an earlier run left owed.
            pending_run_handlers: An earlier run changed the host and
                stopped before ``run_changed`` handlers could fire.

        A KeyboardInterrupt propagates after ``self.report`` is marked
        interrupted and holds every result produced so far.
        """
        report = self.report = PipelineReport(operation_id=self.operation_id)
        pending = set(pending_steps)
        run_changed = pending_run_handlers
        current: StepResult | None = None

        try:
            for step in self.steps:
                logger.info("Step: %s", step.name)
                emit(reporter, "step_started", step.name)

                current = StepResult(step_name=step.name)
                try:
                    step.run(
                        self._prober,
                        reporter=reporter,
                        run_changed=run_changed,
                        pending=step.name in pending,
                        result=current,
                    )
                finally:
                    report.results.extend(current.results)
                    report.steps_run.append(step.name)
                run_changed = run_changed or current.changed

                if current.failed:
                    report.failed_step = step.name
                    failure = current.failure
                    logger.error(
                        "Step %r failed at %r",
                        step.name,
                        failure.action_description if failure else "?",
                    )
                    break

                pending.discard(step.name)
                current = None
        except KeyboardInterrupt:
            report.interrupted = True
            logger.warning(
                "Pipeline %s interrupted in step %r", self.operation_id, report.stopped_step
            )
            raise
        finally:
            if current is not None and current.changed:
                pending.add(current.step_name)
            report.pending_steps = [s.name for s in self.steps if s.name in pending]
            report.pending_run_handlers = not report.ok and (
                pending_run_handlers or report.changed > 0
            )
            report.ended_at = _now_iso()

        emit(reporter, "finished", report)
        return report
