"""
Notification step — point the operator at the web installer.

Runs only when the run changed something; a converged host stays quiet.
"""

from __future__ import annotations

from stackconverge.adapters.registry import HostAdapters
from stackconverge.core.engine.action import Action
from stackconverge.core.engine.step import Step
from stackconverge.core.models.config import Configuration
from stackconverge.core.models.target import Refresh
from stackconverge.core.services.steps.web import CONFIGURE_HTTPS

NOTIFY = "Post-install notification"


def notify(config: Configuration, adapters: HostAdapters) -> Step:
    return Step(
        name=NOTIFY,
        actions=(
            Action(
                description=f"Open {config.install_url}",
                target=Refresh(name="installer"),
                apply=lambda: adapters.notifier.open_url(config.install_url),
                trigger="run_changed",
            ),
        ),
        depends_on=(CONFIGURE_HTTPS,),
    )
