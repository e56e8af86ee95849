"""
Apache httpd adapter (Debian layout: a2enmod / a2ensite / a2dissite).

Enabled modules and sites are symlinks under mods-enabled/ and
sites-enabled/, so probing is a plain filesystem check.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from stackconverge.adapters.base import WebServer
from stackconverge.adapters.shell.command import CommandRunner
from stackconverge.core.errors import PreconditionCheckFailed
from stackconverge.core.models.receipt import Receipt

APACHE_ROOT = "/etc/apache2"


class ApacheWebServer(WebServer):
    """Apache 2 on Debian and derivatives."""

    def __init__(self, runner: CommandRunner | None = None, root: str = APACHE_ROOT):
        self._runner = runner or CommandRunner()
        self._root = Path(root)

    @property
    def name(self) -> str:
        return "apache"

    @property
    def service(self) -> str:
        return "apache2"

    def is_available(self) -> bool:
        return shutil.which("a2enmod") is not None

    def _enabled(self, kind: str, filename: str) -> bool:
        path = self._root / kind / filename
        try:
            return path.exists()
        except OSError as e:
            raise PreconditionCheckFailed(f"Cannot stat {path}: {e}") from e

    def module_enabled(self, module: str) -> bool:
        return self._enabled("mods-enabled", f"{module}.load")

    def site_enabled(self, site: str) -> bool:
        return self._enabled("sites-enabled", f"{site}.conf")

    def enable_module(self, module: str) -> Receipt:
        return self._runner.run(
            ["a2enmod", "-q", module], adapter=self.name, operation="enable_module"
        )

    def enable_site(self, site: str) -> Receipt:
        return self._runner.run(
            ["a2ensite", "-q", site], adapter=self.name, operation="enable_site"
        )

    def disable_site(self, site: str) -> Receipt:
        try:
            enabled = self.site_enabled(site)
        except PreconditionCheckFailed as e:
            return Receipt.failure(adapter=self.name, operation="disable_site", error=str(e))
        if not enabled:
            return Receipt.success(
                adapter=self.name,
                operation="disable_site",
                output=f"site {site} already disabled",
            )
        return self._runner.run(
            ["a2dissite", "-q", site], adapter=self.name, operation="disable_site"
        )
