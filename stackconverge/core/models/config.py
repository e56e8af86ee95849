"""
Configuration — the immutable settings of one provisioning run.

Resolved once (defaults < YAML file < environment < CLI flags) by the
config loader, then passed explicitly into step construction. Nothing in
the engine reads ambient global state.

Derived paths (virtual host files, PHP-FPM service name, certificate
paths, …) are exposed as properties so every step agrees on them.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

_HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}$)([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)"
    r"(\.[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)
_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+([.-][A-Za-z0-9]+)*$")
_PHP_VERSION_RE = re.compile(r"^\d+\.\d+$")
_SQL_IDENT_RE = re.compile(r"^[A-Za-z0-9_]{1,64}$")
_APP_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")

DEFAULT_RELEASE_URL = (
    "https://github.com/glpi-project/glpi/releases/download/"
    "{version}/glpi-{version}.tgz"
)

DEFAULT_CERT_SUBJECT = {
    "C": "FR",
    "ST": "Occitanie",
    "L": "Sete",
    "O": "IT-Connect",
    "OU": "IT",
}

# CN is always the configured domain
CERT_SUBJECT_FIELDS = frozenset({"C", "ST", "L", "O", "OU", "emailAddress"})


class Configuration(BaseModel):
    """Flat, read-only run configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ── Application ──────────────────────────────────────────────
    domain: str = "pts.lan"
    app_name: str = "glpi"
    app_version: str = "11.0.2"
    release_url: str = DEFAULT_RELEASE_URL
    install_dir: str = "/var/www/glpi"
    download_dir: str = "/var/cache/stackconverge"

    # ── Runtime & web server ─────────────────────────────────────
    php_version: str = "8.2"
    sites_dir: str = "/etc/apache2/sites-available"
    web_user: str = "www-data"
    web_group: str = "www-data"

    # ── Database ─────────────────────────────────────────────────
    db_name: str = "glpidb"
    db_user: str = "glpiuser"
    db_password: SecretStr | None = None

    # ── TLS ──────────────────────────────────────────────────────
    ssl_dir: str = "/etc/ssl/glpi"
    cert_subject: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_CERT_SUBJECT))
    cert_validity_days: int = 365

    # ── Engine ───────────────────────────────────────────────────
    index_max_age_hours: float = 24.0
    command_timeout: int = 1800
    open_browser: bool = True
    state_dir: str = "/var/lib/stackconverge"

    # ── Validation ───────────────────────────────────────────────

    @field_validator("domain")
    @classmethod
    def _check_domain(cls, value: str) -> str:
        if not _HOSTNAME_RE.match(value):
            raise ValueError(f"not a valid host name: {value!r}")
        return value.lower()

    @field_validator("app_version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        if not _VERSION_RE.match(value):
            raise ValueError(f"expected a version like 11.0.2, got {value!r}")
        return value

    @field_validator("php_version")
    @classmethod
    def _check_php_version(cls, value: str) -> str:
        if not _PHP_VERSION_RE.match(value):
            raise ValueError(f"expected a version like 8.2, got {value!r}")
        return value

    @field_validator("app_name")
    @classmethod
    def _check_app_name(cls, value: str) -> str:
        if not _APP_NAME_RE.match(value):
            raise ValueError(f"invalid application name: {value!r}")
        return value

    @field_validator("db_name", "db_user")
    @classmethod
    def _check_sql_identifier(cls, value: str) -> str:
        if not _SQL_IDENT_RE.match(value):
            raise ValueError(
                f"{value!r} must be 1-64 characters of letters, digits or underscore"
            )
        return value

    @field_validator("db_password")
    @classmethod
    def _check_password(cls, value: SecretStr | None) -> SecretStr | None:
        if value is None:
            return None
        secret = value.get_secret_value()
        if not secret:
            raise ValueError("database password must not be empty")
        if "'" in secret or "\\" in secret:
            raise ValueError("database password must not contain quotes or backslashes")
        return value

    @field_validator("install_dir", "download_dir", "sites_dir", "ssl_dir", "state_dir")
    @classmethod
    def _check_absolute(cls, value: str) -> str:
        if not PurePosixPath(value).is_absolute():
            raise ValueError(f"must be an absolute path, got {value!r}")
        return value.rstrip("/") or "/"

    @field_validator("release_url")
    @classmethod
    def _check_release_url(cls, value: str) -> str:
        if not value.startswith(("https://", "http://", "file://")):
            raise ValueError(f"unsupported release URL scheme: {value!r}")
        return value

    @field_validator("web_user", "web_group")
    @classmethod
    def _check_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("cert_subject")
    @classmethod
    def _check_cert_subject(cls, value: dict[str, str]) -> dict[str, str]:
        unknown = set(value) - CERT_SUBJECT_FIELDS
        if unknown:
            raise ValueError(
                f"unknown subject fields {sorted(unknown)}; "
                f"allowed: {', '.join(sorted(CERT_SUBJECT_FIELDS))}"
            )
        return value

    @field_validator("cert_validity_days", "command_timeout")
    @classmethod
    def _check_positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("index_max_age_hours")
    @classmethod
    def _check_positive_float(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    # ── Derived values ───────────────────────────────────────────

    @property
    def resolved_release_url(self) -> str:
        return self.release_url.format(version=self.app_version)

    @property
    def archive_path(self) -> str:
        return f"{self.download_dir}/{self.app_name}-{self.app_version}.tgz"

    @property
    def document_root(self) -> str:
        return f"{self.install_dir}/public"

    @property
    def files_dir(self) -> str:
        return f"{self.install_dir}/files"

    @property
    def db_config_path(self) -> str:
        return f"{self.install_dir}/config/config_db.php"

    @property
    def user_ini_path(self) -> str:
        return f"{self.install_dir}/.user.ini"

    @property
    def php_fpm_service(self) -> str:
        return f"php{self.php_version}-fpm"

    @property
    def php_fpm_ini(self) -> str:
        return f"/etc/php/{self.php_version}/fpm/php.ini"

    @property
    def php_fpm_pool(self) -> str:
        return f"/etc/php/{self.php_version}/fpm/pool.d/www.conf"

    @property
    def php_fpm_socket(self) -> str:
        return f"/run/php/php{self.php_version}-fpm.sock"

    @property
    def http_site(self) -> str:
        return self.app_name

    @property
    def https_site(self) -> str:
        return f"{self.app_name}-ssl"

    @property
    def http_site_conf(self) -> str:
        return f"{self.sites_dir}/{self.http_site}.conf"

    @property
    def https_site_conf(self) -> str:
        return f"{self.sites_dir}/{self.https_site}.conf"

    @property
    def key_path(self) -> str:
        return f"{self.ssl_dir}/{self.domain}.key"

    @property
    def cert_path(self) -> str:
        return f"{self.ssl_dir}/{self.domain}.crt"

    @property
    def install_url(self) -> str:
        return f"https://{self.domain}/install/install.php"
