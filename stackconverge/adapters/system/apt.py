"""
APT package manager adapter (Debian, Ubuntu).

Queries go through dpkg-query and a simulated upgrade; mutations go
through apt-get with a non-interactive frontend so no debconf prompt
can block a run.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

from stackconverge.adapters.base import PackageManager
from stackconverge.adapters.shell.command import CommandRunner
from stackconverge.core.errors import PreconditionCheckFailed
from stackconverge.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

# Touched after every successful update; apt's own periodic job uses the same stamp
UPDATE_STAMP = "/var/lib/apt/periodic/update-success-stamp"
PKGCACHE = "/var/cache/apt/pkgcache.bin"


class AptPackageManager(PackageManager):
    """dpkg/apt-get backed package manager."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        stamp_paths: tuple[str, ...] = (UPDATE_STAMP, PKGCACHE),
    ):
        self._runner = runner or CommandRunner()
        self._stamp_paths = stamp_paths

    @property
    def name(self) -> str:
        return "apt"

    def is_available(self) -> bool:
        return shutil.which("apt-get") is not None and shutil.which("dpkg-query") is not None

    # ── Probes ───────────────────────────────────────────────────

    def installed(self, package: str) -> bool:
        result = self._runner.probe(["dpkg-query", "-W", "-f", "${Status}", package])
        # dpkg-query exits 1 for packages it has never heard of
        if result.returncode == 1:
            return False
        if result.returncode != 0:
            raise PreconditionCheckFailed(
                f"dpkg-query failed for {package}: {result.stderr.strip()}"
            )
        return result.stdout.strip().endswith("ok installed")

    def index_age_hours(self) -> float | None:
        mtimes = []
        for raw in self._stamp_paths:
            path = Path(raw)
            try:
                mtimes.append(path.stat().st_mtime)
            except FileNotFoundError:
                continue
            except OSError as e:
                raise PreconditionCheckFailed(f"Cannot stat {path}: {e}") from e
        if not mtimes:
            return None
        return max(0.0, (time.time() - max(mtimes)) / 3600)

    def pending_upgrades(self) -> int:
        result = self._runner.probe(
            ["apt-get", "--simulate", "upgrade"], timeout=300
        )
        if result.returncode != 0:
            raise PreconditionCheckFailed(
                f"apt-get --simulate upgrade failed: {result.stderr.strip()}"
            )
        return sum(1 for line in result.stdout.splitlines() if line.startswith("Inst "))

    # ── Mutations ────────────────────────────────────────────────

    def install(self, package: str) -> Receipt:
        logger.info("Installing %s", package)
        return self._runner.run(
            ["apt-get", "install", "-y", package],
            adapter=self.name,
            operation="install",
            env=_APT_ENV,
        )

    def update_index(self) -> Receipt:
        receipt = self._runner.run(
            ["apt-get", "update"],
            adapter=self.name,
            operation="update",
            env=_APT_ENV,
        )
        if receipt.ok:
            self._touch_stamp()
        return receipt

    def upgrade(self) -> Receipt:
        return self._runner.run(
            ["apt-get", "upgrade", "-y"],
            adapter=self.name,
            operation="upgrade",
            env=_APT_ENV,
        )

    def _touch_stamp(self) -> None:
        stamp = Path(self._stamp_paths[0])
        try:
            stamp.parent.mkdir(parents=True, exist_ok=True)
            stamp.touch()
        except OSError as e:
            # the refresh itself succeeded; the next run will refresh again
            logger.warning("Cannot touch %s: %s", stamp, e)
