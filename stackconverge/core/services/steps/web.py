"""
Web steps — HTTP/HTTPS virtual hosts and PHP session hardening.

Restarts, reloads and cache clears are ``step_changed`` handlers: they
only run when an earlier action of the same step changed something, so
a converged host is never bounced.
"""

from __future__ import annotations

import re

from stackconverge.adapters.registry import HostAdapters
from stackconverge.core.data import DataRegistry
from stackconverge.core.engine.action import Action, sequence
from stackconverge.core.engine.step import Step
from stackconverge.core.models.config import Configuration
from stackconverge.core.models.target import (
    FileContains,
    FileContent,
    Refresh,
    ServiceEnabled,
    WebModuleEnabled,
    WebSiteDisabled,
    WebSiteEnabled,
)
from stackconverge.core.services.steps.application import INSTALL_APPLICATION
from stackconverge.core.services.steps.system import INSTALL_DEPENDENCIES
from stackconverge.core.services.steps.tls import ISSUE_CERTIFICATE

CONFIGURE_HTTP = "Configure HTTP virtual host"
HARDEN_SESSION = "Harden session cookie policy"
CONFIGURE_HTTPS = "Configure HTTPS virtual host"

_INI_PATTERN = r"^session\.cookie_secure.*$"
_INI_LINE = "session.cookie_secure = On"
_POOL_PATTERN = r"^php_admin_value\[session\.cookie_secure\].*$"
_POOL_LINE = "php_admin_value[session.cookie_secure] = 1"
_USER_INI_LINE = "session.cookie_secure = 1"
# Any enabling spelling counts; "= 0" or "= Off" does not
_USER_INI_SECURE = r"^session\.cookie_secure\s*=\s*(1|On)\s*$"


def _module_actions(adapters: HostAdapters, modules: list[str]) -> tuple[Action, ...]:
    web = adapters.web
    return tuple(
        Action(
            description=f"Enable web server module {module}",
            target=WebModuleEnabled(name=module),
            apply=lambda module=module: web.enable_module(module),
        )
        for module in modules
    )


def _reload_web_server(adapters: HostAdapters) -> Action:
    service = adapters.web.service
    return Action(
        description=f"Reload {service}",
        target=Refresh(name=service),
        apply=lambda: adapters.services.reload(service),
        trigger="step_changed",
    )


def _restart_php_fpm(config: Configuration, adapters: HostAdapters) -> Action:
    service = config.php_fpm_service
    return Action(
        description=f"Restart {service}",
        target=Refresh(name=service),
        apply=lambda: adapters.services.restart(service),
        trigger="step_changed",
    )


def _vhost(config: Configuration, data: DataRegistry, template: str, site: str) -> str:
    values = {
        "domain": config.domain,
        "document_root": config.document_root,
        "fpm_socket": config.php_fpm_socket,
        "site": site,
    }
    if template == "vhost_https.conf":
        values.update(cert_path=config.cert_path, key_path=config.key_path)
    return data.render(template, **values)


def configure_http(
    config: Configuration, adapters: HostAdapters, data: DataRegistry
) -> Step:
    web = adapters.web
    content = _vhost(config, data, "vhost_http.conf", config.http_site)
    modules = data.web_modules.get("http", [])
    default_sites = data.web_modules.get("default_sites", [])

    actions: list[Action] = [
        Action(
            description="Write HTTP virtual host",
            target=FileContent(path=config.http_site_conf, content=content),
            apply=lambda: adapters.files.write_text(config.http_site_conf, content),
        ),
        *_module_actions(adapters, modules),
    ]
    actions += [
        Action(
            description=f"Disable default site {site}",
            target=WebSiteDisabled(name=site),
            apply=lambda site=site: web.disable_site(site),
        )
        for site in default_sites
    ]
    actions += [
        Action(
            description=f"Enable site {config.http_site}",
            target=WebSiteEnabled(name=config.http_site),
            apply=lambda: web.enable_site(config.http_site),
        ),
        Action(
            description=f"Enable {config.php_fpm_service} at boot",
            target=ServiceEnabled(name=config.php_fpm_service),
            apply=lambda: adapters.services.enable(config.php_fpm_service),
        ),
        _restart_php_fpm(config, adapters),
        _reload_web_server(adapters),
    ]
    return Step(
        name=CONFIGURE_HTTP,
        actions=tuple(actions),
        depends_on=(INSTALL_DEPENDENCIES, INSTALL_APPLICATION),
    )


def harden_session(config: Configuration, adapters: HostAdapters) -> Step:
    """Force secure session cookies at every PHP configuration level.

    The cache and session directories are only cleared when one of the
    settings actually changed on this run.
    """
    files = adapters.files
    files_dir = config.files_dir

    def clear(path: str):
        return lambda: files.clear_directory(path)

    return Step(
        name=HARDEN_SESSION,
        actions=(
            Action(
                description="Secure session cookies in php.ini",
                target=FileContains(path=config.php_fpm_ini, pattern=rf"^{re.escape(_INI_LINE)}$"),
                apply=lambda: files.set_line(config.php_fpm_ini, _INI_PATTERN, _INI_LINE),
            ),
            Action(
                description="Secure session cookies in the PHP-FPM pool",
                target=FileContains(
                    path=config.php_fpm_pool,
                    pattern=rf"^{re.escape(_POOL_LINE)}$",
                ),
                apply=lambda: files.set_line(config.php_fpm_pool, _POOL_PATTERN, _POOL_LINE),
            ),
            Action(
                description="Secure session cookies in .user.ini",
                target=FileContains(path=config.user_ini_path, pattern=_USER_INI_SECURE),
                apply=lambda: files.write_text(
                    config.user_ini_path,
                    _USER_INI_LINE + "\n",
                    owner=config.web_user,
                    group=config.web_group,
                    mode=0o644,
                ),
            ),
            Action(
                description="Clear application cache and sessions",
                target=Refresh(name=f"{files_dir}/_cache"),
                apply=sequence(
                    clear(f"{files_dir}/_cache"),
                    clear(f"{files_dir}/_sessions"),
                    lambda: files.set_owner(
                        files_dir, config.web_user, config.web_group, recursive=True
                    ),
                ),
                trigger="step_changed",
            ),
            _restart_php_fpm(config, adapters),
            _reload_web_server(adapters),
        ),
        depends_on=(CONFIGURE_HTTP, INSTALL_APPLICATION),
    )


def configure_https(
    config: Configuration, adapters: HostAdapters, data: DataRegistry
) -> Step:
    web = adapters.web
    content = _vhost(config, data, "vhost_https.conf", config.https_site)
    modules = data.web_modules.get("https", [])

    return Step(
        name=CONFIGURE_HTTPS,
        actions=(
            Action(
                description="Write HTTPS virtual host",
                target=FileContent(path=config.https_site_conf, content=content),
                apply=lambda: adapters.files.write_text(config.https_site_conf, content),
            ),
            *_module_actions(adapters, modules),
            Action(
                description=f"Enable site {config.https_site}",
                target=WebSiteEnabled(name=config.https_site),
                apply=lambda: web.enable_site(config.https_site),
            ),
            _reload_web_server(adapters),
        ),
        depends_on=(CONFIGURE_HTTP, ISSUE_CERTIFICATE),
    )
