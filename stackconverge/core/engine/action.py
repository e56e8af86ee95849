"""
Idempotent action — probe first, mutate only the missing delta.

    execute():
        prober says satisfied  → AlreadySatisfied, no mutation
        otherwise apply()      → Changed on an ok receipt
                               → Failed(diagnostic) on a failed receipt

Side effects happen only inside apply(). Re-running after a failure
probes again from scratch; nothing is remembered between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from stackconverge.core.engine.prober import StateProber
from stackconverge.core.errors import PreconditionCheckFailed
from stackconverge.core.models.outcome import Outcome
from stackconverge.core.models.receipt import Receipt
from stackconverge.core.models.target import Target

logger = logging.getLogger(__name__)

# always        probe, then mutate if unsatisfied
# step_changed  only if an earlier action of the same step changed something
# run_changed   only if any earlier action of the run changed something
Trigger = Literal["always", "step_changed", "run_changed"]


@dataclass(frozen=True)
class Action:
    description: str
    target: Target
    apply: Callable[[], Receipt]
    trigger: Trigger = "always"

    def execute(self, prober: StateProber) -> Outcome:
        try:
            if prober.satisfied(self.target):
                logger.debug("satisfied: %s", self.description)
                return Outcome.already_satisfied(self.target.describe())
        except PreconditionCheckFailed as e:
            return Outcome.failed(str(e), error_type="PreconditionCheckFailed")

        logger.debug("applying: %s", self.description)
        try:
            receipt = self.apply()
        except Exception as e:
            # Adapters should never raise, but a crash must still stop the run cleanly
            logger.error("Action %r raised during apply: %s", self.description, e)
            return Outcome.failed(f"Unexpected error: {type(e).__name__}: {e}")

        if receipt.ok:
            return Outcome.changed(receipt.output)
        return Outcome.failed(receipt.diagnostic)


def sequence(*appliers: Callable[[], Receipt]) -> Callable[[], Receipt]:
    """Chain several mutations into one apply; stops at the first failure."""

    def _apply() -> Receipt:
        outputs = []
        receipt: Receipt | None = None
        for applier in appliers:
            receipt = applier()
            if receipt.failed:
                return receipt
            if receipt.output:
                outputs.append(receipt.output)
        assert receipt is not None, "sequence() needs at least one step"
        return receipt.model_copy(update={"output": "\n".join(outputs)})

    return _apply
