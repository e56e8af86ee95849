"""
Reporters — observe each PipelineResult as it is produced.

Reporters are purely observational: the engine calls them through
emit(), which logs and swallows anything a reporter raises, so a broken
terminal or log handler can never change what the pipeline does.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from stackconverge.core.models.outcome import PipelineResult

if TYPE_CHECKING:
    from stackconverge.core.engine.pipeline import PipelineReport

logger = logging.getLogger(__name__)


class Reporter(ABC):
    """Receives one PipelineResult per executed action, in order."""

    @abstractmethod
    def report(self, entry: PipelineResult) -> None:
        """Render or store one result."""

    def step_started(self, name: str) -> None:
        """Called before the first action of each step runs."""

    def finished(self, report: PipelineReport) -> None:
        """Called once when the pipeline stops, successful or not."""


class LoggingReporter(Reporter):
    """Sends every result through ``logging``."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def report(self, entry: PipelineResult) -> None:
        outcome = entry.outcome
        if outcome.is_failed:
            self._log.error(
                "[FAILED] %s / %s: %s", entry.step_name, entry.action_description, outcome.reason
            )
        elif outcome.is_changed:
            self._log.info("[CHANGED] %s / %s", entry.step_name, entry.action_description)
        else:
            self._log.info("[OK] %s / %s", entry.step_name, entry.action_description)

    def finished(self, report: PipelineReport) -> None:
        if report.ok:
            self._log.info(
                "Pipeline %s complete: %d changed, %d already satisfied",
                report.operation_id,
                report.changed,
                report.satisfied,
            )
        else:
            self._log.error(
                "Pipeline %s halted at step %r", report.operation_id, report.failed_step
            )


class CollectingReporter(Reporter):
    """Test double: keeps every entry for assertions."""

    def __init__(self) -> None:
        self.entries: list[PipelineResult] = []
        self.steps: list[str] = []
        self.reports: list[PipelineReport] = []

    def report(self, entry: PipelineResult) -> None:
        self.entries.append(entry)

    def step_started(self, name: str) -> None:
        self.steps.append(name)

    def finished(self, report: PipelineReport) -> None:
        self.reports.append(report)

    @property
    def statuses(self) -> list[str]:
        return [e.outcome.status for e in self.entries]


class MultiReporter(Reporter):
    """Fan-out to several reporters."""

    def __init__(self, *reporters: Reporter):
        self._reporters = [r for r in reporters if r is not None]

    def report(self, entry: PipelineResult) -> None:
        for reporter in self._reporters:
            emit(reporter, "report", entry)

    def step_started(self, name: str) -> None:
        for reporter in self._reporters:
            emit(reporter, "step_started", name)

    def finished(self, report: PipelineReport) -> None:
        for reporter in self._reporters:
            emit(reporter, "finished", report)


def emit(reporter: Reporter | None, hook: str, payload: object) -> None:
    """Call ``reporter.<hook>(payload)``; a failing reporter never affects the run."""
    if reporter is None:
        return
    try:
        getattr(reporter, hook)(payload)
    except Exception as e:
        logger.warning("Reporter %s.%s failed: %s", type(reporter).__name__, hook, e)
