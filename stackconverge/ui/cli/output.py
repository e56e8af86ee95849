"""
Terminal rendering for provisioning runs.

ClickReporter prints each result the moment the engine produces it, so
a long package install shows progress instead of a silent terminal.
"""

from __future__ import annotations

import click

from stackconverge.core.engine.pipeline import PipelineReport
from stackconverge.core.models.outcome import PipelineResult
from stackconverge.core.observability.reporter import Reporter

_MARKERS = {
    "already_satisfied": ("[OK]", "green"),
    "changed": ("[CHANGED]", "blue"),
    "failed": ("[FAILED]", "red"),
}


class ClickReporter(Reporter):
    """Colored one-line-per-action output.

    Args:
        quiet: Only print changes and failures.
    """

    def __init__(self, quiet: bool = False):
        self.quiet = quiet

    def step_started(self, name: str) -> None:
        if not self.quiet:
            click.echo()
            click.secho(f"▶ {name}", fg="cyan", bold=True)

    def report(self, entry: PipelineResult) -> None:
        outcome = entry.outcome
        if self.quiet and outcome.is_satisfied:
            return
        marker, color = _MARKERS[outcome.status]
        click.secho(f"   {marker:<10}", fg=color, nl=False)
        click.echo(f" {entry.action_description}")
        if outcome.is_failed and outcome.reason:
            for line in outcome.reason.splitlines():
                click.echo(f"              {line}", err=True)

    def finished(self, report: PipelineReport) -> None:
        click.echo()
        if report.ok:
            click.secho(
                f"✅ Done: {report.changed} changed, {report.satisfied} already satisfied",
                fg="green",
                bold=True,
            )
        else:
            click.secho(f"❌ Failed at step: {report.failed_step}", fg="red", bold=True)
