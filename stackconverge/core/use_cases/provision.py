"""
Provision use case — converge one host onto the configured stack.

The top-level orchestrator: takes the host lock, builds the steps,
runs the pipeline, then persists the host state and audit entry. The
full vertical slice from a validated Configuration to an audited run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from stackconverge.adapters.registry import HostAdapters, local_adapters
from stackconverge.core.data import DataRegistry
from stackconverge.core.engine.pipeline import Pipeline, PipelineReport
from stackconverge.core.engine.prober import StateProber
from stackconverge.core.errors import ConfigurationInvalid, LockHeld
from stackconverge.core.models.config import Configuration
from stackconverge.core.observability.reporter import Reporter
from stackconverge.core.persistence.audit import AuditEntry, AuditWriter
from stackconverge.core.persistence.lock import HostLock
from stackconverge.core.persistence.state_file import (
    default_state_path,
    load_state,
    save_state,
)
from stackconverge.core.services.steps import build_steps

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of one provisioning run."""

    report: PipelineReport | None = None
    config: Configuration | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None and self.report.ok

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        if self.config:
            result["domain"] = self.config.domain
            result["app_version"] = self.config.app_version
            result["install_url"] = self.config.install_url
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def provision(
    config: Configuration,
    adapters: HostAdapters | None = None,
    reporter: Reporter | None = None,
    data: DataRegistry | None = None,
) -> ProvisionResult:
    """Run every provisioning step against the host.

    Args:
        config: Validated run configuration.
        adapters: Host adapters (default: the real local ones).
        reporter: Receives each result as it is produced.
        data: Catalogs and templates (default: the bundled ones).

    Returns:
        ProvisionResult. ``error`` is set when the run could not start
        at all; a failing step is reported through ``report`` instead.

    A KeyboardInterrupt is recorded in the state file and the audit
    ledger before it propagates.
    """
    result = ProvisionResult(config=config)

    if adapters is None:
        adapters = local_adapters(
            command_timeout=config.command_timeout,
            open_browser=config.open_browser,
        )

    missing = adapters.unavailable()
    if missing:
        logger.warning("Adapters reporting their tool unavailable: %s", ", ".join(missing))

    try:
        steps = build_steps(config, adapters, data)
        pipeline = Pipeline(steps, StateProber(adapters))
    except ConfigurationInvalid as e:
        result.error = str(e)
        return result

    state_dir = Path(config.state_dir)
    try:
        with HostLock(state_dir):
            owed = load_state(default_state_path(state_dir))
            if owed.pending_steps:
                logger.info("Handlers owed by an earlier run: %s", ", ".join(owed.pending_steps))
            start = time.monotonic()
            try:
                report = pipeline.run(
                    reporter,
                    pending_steps=owed.pending_steps,
                    pending_run_handlers=owed.pending_run_handlers,
                )
            finally:
                # An interrupted run is recorded too, then the interrupt propagates
                if pipeline.report is not None:
                    duration_ms = int((time.monotonic() - start) * 1000)
                    _persist(config, pipeline.report, state_dir, duration_ms)
    except LockHeld as e:
        result.error = str(e)
        return result

    result.report = report
    return result


def _persist(
    config: Configuration, report: PipelineReport, state_dir: Path, duration_ms: int
) -> None:
    # ── Persist state ────────────────────────────────────────────
    state_path = default_state_path(state_dir)
    state = load_state(state_path)
    state.domain = config.domain
    state.app_name = config.app_name
    state.app_version = config.app_version
    state.pending_steps = list(report.pending_steps)
    state.pending_run_handlers = report.pending_run_handlers

    run = state.last_run
    run.operation_id = report.operation_id
    run.started_at = report.started_at
    run.ended_at = report.ended_at
    run.status = report.status
    run.failed_step = report.stopped_step
    run.actions_total = report.total
    run.actions_changed = report.changed
    run.actions_satisfied = report.satisfied
    run.actions_failed = report.failed

    for step_name in report.steps_run:
        results = report.results_for(step_name)
        state.set_step_state(
            step_name,
            status=report.status if step_name == report.stopped_step else "ok",
            last_run_at=results[-1].recorded_at if results else report.ended_at,
            actions_changed=sum(1 for r in results if r.outcome.is_changed),
            actions_satisfied=sum(1 for r in results if r.outcome.is_satisfied),
        )

    try:
        save_state(state, state_path)
    except OSError as e:
        logger.error("State not saved: %s", e)

    # ── Write audit log ──────────────────────────────────────────
    AuditWriter(state_dir=state_dir).write(
        AuditEntry.from_report(
            report,
            domain=config.domain,
            app_version=config.app_version,
            duration_ms=duration_ms,
        )
    )
