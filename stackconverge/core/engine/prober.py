"""
State prober — answers "does this target already hold?".

Probing is a pure read: no side effects, safe to repeat. Absence of the
queried resource is a normal False. Only an inability to find out
(permission denied, query tool missing) raises PreconditionCheckFailed,
and that is never downgraded to False.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

from stackconverge.adapters.registry import HostAdapters
from stackconverge.core.errors import PreconditionCheckFailed
from stackconverge.core.models.target import (
    DatabaseExists,
    DatabaseUserExists,
    FileContains,
    FileContent,
    FileExists,
    NoPendingUpgrades,
    PackageIndexFresh,
    PackageInstalled,
    Refresh,
    ServiceActive,
    ServiceEnabled,
    Target,
    WebModuleEnabled,
    WebSiteDisabled,
    WebSiteEnabled,
)

logger = logging.getLogger(__name__)


class StateProber:
    """Dispatches each target kind to the adapter that owns the resource."""

    def __init__(self, adapters: HostAdapters):
        self._adapters = adapters
        self._probes: dict[type, Callable[[Any], bool]] = {
            PackageInstalled: self._package_installed,
            PackageIndexFresh: self._package_index_fresh,
            NoPendingUpgrades: self._no_pending_upgrades,
            FileExists: self._file_exists,
            FileContains: self._file_contains,
            FileContent: self._file_content,
            DatabaseExists: self._database_exists,
            DatabaseUserExists: self._database_user_exists,
            ServiceActive: self._service_active,
            ServiceEnabled: self._service_enabled,
            WebModuleEnabled: self._web_module_enabled,
            WebSiteEnabled: self._web_site_enabled,
            WebSiteDisabled: self._web_site_disabled,
            Refresh: self._refresh,
        }

    def satisfied(self, target: Target) -> bool:
        probe = self._probes.get(type(target))
        if probe is None:
            raise PreconditionCheckFailed(
                f"No probe registered for target type {type(target).__name__}"
            )
        try:
            result = probe(target)
        except PreconditionCheckFailed:
            raise
        except Exception as e:
            raise PreconditionCheckFailed(
                f"Cannot determine whether {target.describe()}: {e}"
            ) from e
        logger.debug("probe %s -> %s", target.describe(), result)
        return result

    # ── Packages ─────────────────────────────────────────────────

    def _package_installed(self, target: PackageInstalled) -> bool:
        return self._adapters.packages.installed(target.name)

    def _package_index_fresh(self, target: PackageIndexFresh) -> bool:
        age = self._adapters.packages.index_age_hours()
        return age is not None and age <= target.max_age_hours

    def _no_pending_upgrades(self, target: NoPendingUpgrades) -> bool:
        return self._adapters.packages.pending_upgrades() == 0

    # ── Files ────────────────────────────────────────────────────

    def _file_exists(self, target: FileExists) -> bool:
        return self._adapters.files.exists(target.path)

    def _file_contains(self, target: FileContains) -> bool:
        content = self._adapters.files.read_text(target.path)
        if content is None:
            return False
        return re.search(target.pattern, content, re.MULTILINE) is not None

    def _file_content(self, target: FileContent) -> bool:
        return self._adapters.files.read_text(target.path) == target.content

    # ── Database ─────────────────────────────────────────────────

    def _database_exists(self, target: DatabaseExists) -> bool:
        return self._adapters.database.database_exists(target.name)

    def _database_user_exists(self, target: DatabaseUserExists) -> bool:
        return self._adapters.database.user_exists(target.name)

    # ── Services ─────────────────────────────────────────────────

    def _service_active(self, target: ServiceActive) -> bool:
        return self._adapters.services.is_active(target.name)

    def _service_enabled(self, target: ServiceEnabled) -> bool:
        return self._adapters.services.is_enabled(target.name)

    # ── Web server ───────────────────────────────────────────────

    def _web_module_enabled(self, target: WebModuleEnabled) -> bool:
        return self._adapters.web.module_enabled(target.name)

    def _web_site_enabled(self, target: WebSiteEnabled) -> bool:
        return self._adapters.web.site_enabled(target.name)

    def _web_site_disabled(self, target: WebSiteDisabled) -> bool:
        return not self._adapters.web.site_enabled(target.name)

    # ── Triggers ─────────────────────────────────────────────────

    def _refresh(self, target: Refresh) -> bool:
        return False
