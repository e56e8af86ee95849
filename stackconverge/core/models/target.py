"""
Targets — declarative descriptions of desired host state.

A Target says *what* should hold, never *how* to get there. The
StateProber answers whether a target already holds; an Action pairs a
target with the mutation that makes it hold.

Targets are frozen: constructed once per Action and never modified.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _Target(BaseModel):
    model_config = ConfigDict(frozen=True)

    def describe(self) -> str:
        """Short human-readable form, used in reports and logs."""
        raise NotImplementedError


# ── Packages ────────────────────────────────────────────────────


class PackageInstalled(_Target):
    kind: Literal["package_installed"] = "package_installed"
    name: str

    def describe(self) -> str:
        return f"package {self.name} installed"


class PackageIndexFresh(_Target):
    """Package index refreshed within the last ``max_age_hours``."""

    kind: Literal["package_index_fresh"] = "package_index_fresh"
    max_age_hours: float = 24.0

    def describe(self) -> str:
        return f"package index younger than {self.max_age_hours:g}h"


class NoPendingUpgrades(_Target):
    kind: Literal["no_pending_upgrades"] = "no_pending_upgrades"

    def describe(self) -> str:
        return "no pending package upgrades"


# ── Files ───────────────────────────────────────────────────────


class FileExists(_Target):
    kind: Literal["file_exists"] = "file_exists"
    path: str

    def describe(self) -> str:
        return f"{self.path} exists"


class FileContains(_Target):
    """File text matches ``pattern`` (regex, multiline). Missing file = no match."""

    kind: Literal["file_contains"] = "file_contains"
    path: str
    pattern: str

    def describe(self) -> str:
        return f"{self.path} matches /{self.pattern}/"


class FileContent(_Target):
    """File text equals ``content`` exactly."""

    kind: Literal["file_content"] = "file_content"
    path: str
    content: str

    def describe(self) -> str:
        return f"{self.path} up to date"


# ── Database ────────────────────────────────────────────────────


class DatabaseExists(_Target):
    kind: Literal["database_exists"] = "database_exists"
    name: str

    def describe(self) -> str:
        return f"database {self.name} exists"


class DatabaseUserExists(_Target):
    kind: Literal["database_user_exists"] = "database_user_exists"
    name: str

    def describe(self) -> str:
        return f"database user {self.name} exists"


# ── Services ────────────────────────────────────────────────────


class ServiceActive(_Target):
    kind: Literal["service_active"] = "service_active"
    name: str

    def describe(self) -> str:
        return f"service {self.name} active"


class ServiceEnabled(_Target):
    kind: Literal["service_enabled"] = "service_enabled"
    name: str

    def describe(self) -> str:
        return f"service {self.name} enabled"


# ── Web server ──────────────────────────────────────────────────


class WebModuleEnabled(_Target):
    kind: Literal["web_module_enabled"] = "web_module_enabled"
    name: str

    def describe(self) -> str:
        return f"web server module {self.name} enabled"


class WebSiteEnabled(_Target):
    kind: Literal["web_site_enabled"] = "web_site_enabled"
    name: str

    def describe(self) -> str:
        return f"site {self.name} enabled"


class WebSiteDisabled(_Target):
    kind: Literal["web_site_disabled"] = "web_site_disabled"
    name: str

    def describe(self) -> str:
        return f"site {self.name} disabled"


# ── Triggers ────────────────────────────────────────────────────


class Refresh(_Target):
    """Never satisfied on its own.

    Only meaningful on triggered actions (restart after a config change,
    cache clear, final notification): the trigger decides whether the
    action runs at all.
    """

    kind: Literal["refresh"] = "refresh"
    name: str

    def describe(self) -> str:
        return f"refresh {self.name}"


Target = Annotated[
    Union[
        PackageInstalled,
        PackageIndexFresh,
        NoPendingUpgrades,
        FileExists,
        FileContains,
        FileContent,
        DatabaseExists,
        DatabaseUserExists,
        ServiceActive,
        ServiceEnabled,
        WebModuleEnabled,
        WebSiteEnabled,
        WebSiteDisabled,
        Refresh,
    ],
    Field(discriminator="kind"),
]
