"""
System steps — package index, upgrades and the dependency set.
"""

from __future__ import annotations

from stackconverge.adapters.registry import HostAdapters
from stackconverge.core.data import DataRegistry
from stackconverge.core.engine.action import Action
from stackconverge.core.engine.step import Step
from stackconverge.core.models.config import Configuration
from stackconverge.core.models.target import (
    NoPendingUpgrades,
    PackageIndexFresh,
    PackageInstalled,
)

SYSTEM_UPDATE = "System update"
INSTALL_DEPENDENCIES = "Install dependencies"


def system_update(config: Configuration, adapters: HostAdapters) -> Step:
    packages = adapters.packages
    return Step(
        name=SYSTEM_UPDATE,
        actions=(
            Action(
                description="Refresh package index",
                target=PackageIndexFresh(max_age_hours=config.index_max_age_hours),
                apply=packages.update_index,
            ),
            Action(
                description="Apply pending upgrades",
                target=NoPendingUpgrades(),
                apply=packages.upgrade,
            ),
        ),
    )


def install_dependencies(
    config: Configuration, adapters: HostAdapters, data: DataRegistry
) -> Step:
    """One action per package, so a re-run installs only what is missing."""
    packages = adapters.packages
    actions = tuple(
        Action(
            description=f"Install {name}",
            target=PackageInstalled(name=name),
            apply=lambda name=name: packages.install(name),
        )
        for name in data.packages(config.php_version)
    )
    return Step(name=INSTALL_DEPENDENCIES, actions=actions, depends_on=(SYSTEM_UPDATE,))
