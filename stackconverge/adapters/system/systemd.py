"""
systemd service control adapter.
"""

from __future__ import annotations

import shutil

from stackconverge.adapters.base import ServiceControl
from stackconverge.adapters.shell.command import CommandRunner
from stackconverge.core.errors import PreconditionCheckFailed
from stackconverge.core.models.receipt import Receipt


class SystemdServiceControl(ServiceControl):
    """Drive services through systemctl."""

    def __init__(self, runner: CommandRunner | None = None):
        self._runner = runner or CommandRunner()

    @property
    def name(self) -> str:
        return "systemd"

    def is_available(self) -> bool:
        return shutil.which("systemctl") is not None

    def is_active(self, service: str) -> bool:
        result = self._runner.probe(["systemctl", "is-active", service])
        return result.stdout.strip() == "active"

    def is_enabled(self, service: str) -> bool:
        result = self._runner.probe(["systemctl", "is-enabled", service])
        state = result.stdout.strip()
        stderr = result.stderr.lower()
        if "no such file" in stderr or "not found" in stderr:
            return False
        if result.returncode != 0 and not state:
            raise PreconditionCheckFailed(
                f"systemctl is-enabled {service} failed: {result.stderr.strip()}"
            )
        return state in ("enabled", "enabled-runtime", "alias", "static")

    def restart(self, service: str) -> Receipt:
        return self._systemctl("restart", service)

    def reload(self, service: str) -> Receipt:
        return self._systemctl("reload", service)

    def enable(self, service: str) -> Receipt:
        return self._systemctl("enable", service)

    def _systemctl(self, verb: str, service: str) -> Receipt:
        return self._runner.run(
            ["systemctl", verb, service],
            adapter=self.name,
            operation=verb,
        )
