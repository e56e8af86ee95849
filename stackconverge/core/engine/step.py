"""
Step — one coherent provisioning concern, as an ordered list of actions.

Actions run strictly in declared order. The first Failed outcome stops
the step: later actions may assume earlier ones succeeded, so they are
never attempted. A step carries no state beyond its action list.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from stackconverge.core.engine.action import Action
from stackconverge.core.engine.prober import StateProber
from stackconverge.core.models.outcome import Outcome, PipelineResult
from stackconverge.core.observability.reporter import Reporter, emit

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Outcomes of one step run, in execution order."""

    step_name: str
    results: list[PipelineResult] = field(default_factory=list)

    @property
    def outcomes(self) -> list[tuple[str, Outcome]]:
        return [(r.action_description, r.outcome) for r in self.results]

    @property
    def failed(self) -> bool:
        return any(r.outcome.is_failed for r in self.results)

    @property
    def changed(self) -> bool:
        return any(r.outcome.is_changed for r in self.results)

    @property
    def failure(self) -> PipelineResult | None:
        for r in self.results:
            if r.outcome.is_failed:
                return r
        return None


@dataclass(frozen=True)
class Step:
    name: str
    actions: tuple[Action, ...]
    depends_on: tuple[str, ...] = ()

    def run(
        self,
        prober: StateProber,
        reporter: Reporter | None = None,
        run_changed: bool = False,
        pending: bool = False,
        result: StepResult | None = None,
    ) -> StepResult:
        """Execute actions in order, stopping at the first failure.

        Args:
            prober: Probes each action's target.
            reporter: Receives every result as it is produced.
            run_changed: Whether an earlier step of this run changed anything
                (drives ``run_changed`` triggers).
            pending: An earlier run changed this step and stopped before its
                handlers completed; ``step_changed`` handlers fire regardless.
            result: Collects outcomes as they are produced, so a caller
                keeps them when the step is interrupted.
        """
        if result is None:
            result = StepResult(step_name=self.name)

        for action in self.actions:
            start = time.monotonic()
            if self._triggered(action, pending or result.changed, run_changed):
                outcome = action.execute(prober)
            else:
                outcome = Outcome.already_satisfied("not triggered: nothing changed")

            entry = PipelineResult(
                step_name=self.name,
                action_description=action.description,
                target=action.target.describe(),
                outcome=outcome,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            result.results.append(entry)
            emit(reporter, "report", entry)

            if outcome.is_failed:
                logger.debug("Step %r stopped at %r", self.name, action.description)
                break

        return result

    @staticmethod
    def _triggered(action: Action, step_changed: bool, run_changed: bool) -> bool:
        if action.trigger == "step_changed":
            return step_changed
        if action.trigger == "run_changed":
            return step_changed or run_changed
        return True
