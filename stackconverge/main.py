"""
stack-converge — CLI entrypoint.

Usage:
    stackconverge --help
    stackconverge --domain glpi.example.lan --db-password ...
    stackconverge --mock --db-password test      # dry rehearsal on fakes
"""

from __future__ import annotations

import json
import sys
import tempfile
from pathlib import Path

import click

from stackconverge import __version__
from stackconverge.core.observability.logging_config import register_secret, setup_logging


@click.command()
@click.version_option(version=__version__, prog_name="stackconverge")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to stackconverge.yml (default: auto-detect).",
)
@click.option("--domain", default=None, help="Host name the stack is served on.")
@click.option("--app-version", default=None, help="Application release to install.")
@click.option("--install-dir", default=None, help="Directory the application is installed into.")
@click.option("--db-name", default=None, help="Application database name.")
@click.option("--db-user", default=None, help="Application database user.")
@click.option(
    "--db-password",
    default=None,
    help="Database password (prompted if not given; env STACKCONVERGE_DB_PASSWORD).",
)
@click.option("--no-browser", is_flag=True, help="Print the installer URL instead of opening it.")
@click.option("--state-dir", default=None, help="Directory for the lock, state and audit files.")
@click.option("--mock", is_flag=True, help="Run against in-memory fakes; the host is not touched.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only show changes and failures.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(
    config_path: str | None,
    domain: str | None,
    app_version: str | None,
    install_dir: str | None,
    db_name: str | None,
    db_user: str | None,
    db_password: str | None,
    no_browser: bool,
    state_dir: str | None,
    mock: bool,
    as_json: bool,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Converge this host onto a working web application stack.

    Every step probes the host first and changes only what is missing, so
    running it again is always safe. The run stops at the first failed
    step; fix the cause and run the same command again.
    """
    from stackconverge.core.config.loader import load_configuration
    from stackconverge.core.errors import ConfigurationInvalid
    from stackconverge.core.models.config import Configuration

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = None

    setup_logging(level=level, quiet_third_party=not debug)

    # ── Configuration ────────────────────────────────────────────
    overrides = {
        "domain": domain,
        "app_version": app_version,
        "install_dir": install_dir,
        "db_name": db_name,
        "db_user": db_user,
        "db_password": db_password,
        "state_dir": state_dir,
        "open_browser": False if no_browser else None,
    }
    if mock and state_dir is None:
        overrides["state_dir"] = tempfile.mkdtemp(prefix="stackconverge-mock-")

    try:
        config = load_configuration(
            Path(config_path) if config_path else None,
            overrides=overrides,
        )
        if config.db_password is None:
            password = click.prompt(
                f"Database password for {config.db_user}",
                hide_input=True,
                confirmation_prompt=True,
                err=True,
            )
            config = Configuration.model_validate(
                {**config.model_dump(), "db_password": password}
            )
    except ConfigurationInvalid as e:
        _fail_config(str(e), as_json)
    except ValueError as e:
        _fail_config(f"Invalid configuration: {e}", as_json)

    register_secret(config.db_password.get_secret_value())

    # ── Run ──────────────────────────────────────────────────────
    from stackconverge.core.use_cases.provision import provision

    adapters = None
    if mock:
        from stackconverge.adapters.mock import MockHost

        adapters = MockHost().as_adapters()

    from stackconverge.core.observability.reporter import LoggingReporter, MultiReporter

    # Per-action status always reaches the log handlers (and the log file)
    reporter = LoggingReporter()
    if not as_json:
        from stackconverge.ui.cli.output import ClickReporter

        reporter = MultiReporter(ClickReporter(quiet=quiet), reporter)
        if not quiet:
            mode_label = "[mock] " if mock else ""
            click.secho(
                f"\n⚡ {mode_label}{config.app_name} {config.app_version} — {config.domain}",
                fg="cyan",
                bold=True,
            )

    try:
        result = provision(config, adapters=adapters, reporter=reporter)
    except KeyboardInterrupt:
        click.secho("\n⚠️  Interrupted — completed actions stay in place; run again to resume.",
                    fg="yellow", err=True)
        sys.exit(130)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)

    report = result.report
    assert report is not None

    if not report.ok:
        sys.exit(1)

    click.secho(f"🌐 {config.install_url}", fg="cyan", bold=True)


def _fail_config(message: str, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps({"error": message}, indent=2))
    else:
        click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(2)


if __name__ == "__main__":
    cli()
