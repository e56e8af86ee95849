"""
Provisioning steps — the stack as an ordered list of Steps.

    steps = build_steps(config, adapters)
    Pipeline(steps, StateProber(adapters)).run()

Order matters: each step only declares the steps it depends on, and
the pipeline refuses an order that runs a step before its dependencies.
"""

from __future__ import annotations

from stackconverge.adapters.registry import HostAdapters
from stackconverge.core.data import DataRegistry
from stackconverge.core.engine.step import Step
from stackconverge.core.errors import ConfigurationInvalid
from stackconverge.core.models.config import Configuration
from stackconverge.core.services.steps.application import (
    CONFIGURE_DATABASE,
    INSTALL_APPLICATION,
    configure_database,
    install_application,
)
from stackconverge.core.services.steps.notify import NOTIFY, notify
from stackconverge.core.services.steps.system import (
    INSTALL_DEPENDENCIES,
    SYSTEM_UPDATE,
    install_dependencies,
    system_update,
)
from stackconverge.core.services.steps.tls import ISSUE_CERTIFICATE, issue_certificate
from stackconverge.core.services.steps.web import (
    CONFIGURE_HTTP,
    CONFIGURE_HTTPS,
    HARDEN_SESSION,
    configure_http,
    configure_https,
    harden_session,
)

STEP_ORDER = (
    SYSTEM_UPDATE,
    INSTALL_DEPENDENCIES,
    INSTALL_APPLICATION,
    CONFIGURE_HTTP,
    HARDEN_SESSION,
    CONFIGURE_DATABASE,
    ISSUE_CERTIFICATE,
    CONFIGURE_HTTPS,
    NOTIFY,
)


def build_steps(
    config: Configuration,
    adapters: HostAdapters,
    data: DataRegistry | None = None,
) -> list[Step]:
    """All provisioning steps for ``config``, in execution order.

    Raises:
        ConfigurationInvalid: The database password is not set.
    """
    if config.db_password is None:
        raise ConfigurationInvalid("db_password is required")

    data = data or DataRegistry()
    return [
        system_update(config, adapters),
        install_dependencies(config, adapters, data),
        install_application(config, adapters),
        configure_http(config, adapters, data),
        harden_session(config, adapters),
        configure_database(config, adapters, data),
        issue_certificate(config, adapters),
        configure_https(config, adapters, data),
        notify(config, adapters),
    ]


__all__ = ["STEP_ORDER", "build_steps"]
