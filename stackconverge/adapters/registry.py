"""
Adapter registry — the set of host adapters one run talks to.

The engine never constructs adapters itself. It receives a HostAdapters
bundle (real ones from local_adapters(), fakes from MockHost) and every
probe and mutation goes through it. Swapping the bundle is how tests and
``--mock`` runs avoid touching the host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any

from stackconverge.adapters.base import (
    Adapter,
    CertificateIssuer,
    Database,
    FileSystem,
    Notifier,
    PackageManager,
    ReleaseFetcher,
    ServiceControl,
    WebServer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostAdapters:
    """One adapter per external interface."""

    packages: PackageManager
    files: FileSystem
    database: Database
    services: ServiceControl
    web: WebServer
    certificates: CertificateIssuer
    releases: ReleaseFetcher
    notifier: Notifier

    def all(self) -> list[Adapter]:
        return [getattr(self, f.name) for f in fields(self)]

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all adapters, keyed by role."""
        status = {}
        for f in fields(self):
            adapter: Adapter = getattr(self, f.name)
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[f.name] = {
                "name": adapter.name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    def unavailable(self) -> list[str]:
        """Roles whose adapter reports its tool missing."""
        return [role for role, info in self.adapter_status().items() if not info["available"]]


def local_adapters(command_timeout: int = 1800, open_browser: bool = True) -> HostAdapters:
    """The real adapters for a Debian-family host."""
    from stackconverge.adapters.database.mysql import MySQLDatabase
    from stackconverge.adapters.net.browser import BrowserNotifier
    from stackconverge.adapters.net.release import HttpReleaseFetcher
    from stackconverge.adapters.shell.command import CommandRunner
    from stackconverge.adapters.shell.filesystem import LocalFileSystem
    from stackconverge.adapters.system.apt import AptPackageManager
    from stackconverge.adapters.system.systemd import SystemdServiceControl
    from stackconverge.adapters.tls.certificate import X509CertificateIssuer
    from stackconverge.adapters.web.apache import ApacheWebServer

    runner = CommandRunner(timeout=command_timeout)
    adapters = HostAdapters(
        packages=AptPackageManager(runner),
        files=LocalFileSystem(),
        database=MySQLDatabase(runner),
        services=SystemdServiceControl(runner),
        web=ApacheWebServer(runner),
        certificates=X509CertificateIssuer(),
        releases=HttpReleaseFetcher(timeout=min(command_timeout, 600)),
        notifier=BrowserNotifier(launch=open_browser),
    )
    logger.debug("Local adapters: %s", [a.name for a in adapters.all()])
    return adapters
