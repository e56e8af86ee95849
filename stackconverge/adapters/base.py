"""
Adapter base — the contracts between the engine and the host.

The engine only talks to the host through these interfaces, never
directly to external tools. Each interface splits into two halves:

    probes     read-only, return bool (or a value), raise
               PreconditionCheckFailed only when state cannot be read
    mutations  change the host, return a Receipt, never raise for
               operational failures

Real implementations live in the sub-packages (system/, database/,
web/, tls/, net/, shell/). In-memory fakes live in mock.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping

from stackconverge.core.models.receipt import Receipt


class Adapter(ABC):
    """Common surface of every adapter."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'apt', 'mysql', 'apache')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class PackageManager(Adapter):
    """Distribution package manager."""

    @abstractmethod
    def installed(self, package: str) -> bool:
        """Whether ``package`` is installed."""

    @abstractmethod
    def install(self, package: str) -> Receipt:
        """Install ``package``. Installing an installed package is a no-op."""

    @abstractmethod
    def index_age_hours(self) -> float | None:
        """Hours since the package index was last refreshed, None if never."""

    @abstractmethod
    def update_index(self) -> Receipt:
        """Refresh the package index."""

    @abstractmethod
    def pending_upgrades(self) -> int:
        """Number of installed packages with an upgrade available."""

    @abstractmethod
    def upgrade(self) -> Receipt:
        """Apply all pending upgrades."""


class FileSystem(Adapter):
    """Text files, directories, ownership and permissions."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Whether ``path`` exists (file or directory)."""

    @abstractmethod
    def read_text(self, path: str) -> str | None:
        """File contents, or None if the file does not exist."""

    @abstractmethod
    def write_text(
        self,
        path: str,
        content: str,
        *,
        owner: str | None = None,
        group: str | None = None,
        mode: int | None = None,
    ) -> Receipt:
        """Write ``content`` atomically: either it fully lands or nothing changes."""

    @abstractmethod
    def set_line(self, path: str, pattern: str, line: str) -> Receipt:
        """Replace every match of ``pattern`` with ``line``, or append ``line``.

        ``pattern`` is a multiline regex that should match whole lines,
        e.g. ``^session\\.cookie_secure.*$``. A missing file is created.
        """

    @abstractmethod
    def make_dirs(self, path: str, *, mode: int | None = None) -> Receipt:
        """Create ``path`` and its parents."""

    @abstractmethod
    def set_owner(
        self, path: str, owner: str, group: str, *, recursive: bool = False
    ) -> Receipt:
        """Change ownership of ``path``."""

    @abstractmethod
    def set_mode(self, path: str, mode: int, *, recursive: bool = False) -> Receipt:
        """Change permission bits of ``path``."""

    @abstractmethod
    def clear_directory(self, path: str) -> Receipt:
        """Delete the contents of ``path`` but keep the directory itself."""

    @abstractmethod
    def extract_archive(
        self,
        archive: str,
        dest: str,
        *,
        owner: str | None = None,
        group: str | None = None,
        mode: int | None = None,
    ) -> Receipt:
        """Unpack a release tarball so its single top-level directory becomes ``dest``."""


class Database(Adapter):
    """Database server reachable over a local control channel."""

    @abstractmethod
    def database_exists(self, name: str) -> bool:
        """Whether database ``name`` exists."""

    @abstractmethod
    def user_exists(self, name: str) -> bool:
        """Whether user ``name`` exists for local connections."""

    @abstractmethod
    def execute_ddl(self, statements: Iterable[str]) -> Receipt:
        """Run idempotent (IF NOT EXISTS style) statements as one batch."""


class ServiceControl(Adapter):
    """Service manager."""

    @abstractmethod
    def is_active(self, service: str) -> bool:
        """Whether ``service`` is running."""

    @abstractmethod
    def is_enabled(self, service: str) -> bool:
        """Whether ``service`` starts at boot."""

    @abstractmethod
    def restart(self, service: str) -> Receipt:
        """Restart ``service``."""

    @abstractmethod
    def reload(self, service: str) -> Receipt:
        """Reload ``service`` configuration."""

    @abstractmethod
    def enable(self, service: str) -> Receipt:
        """Enable ``service`` at boot."""


class WebServer(Adapter):
    """Web server module and site management."""

    @property
    @abstractmethod
    def service(self) -> str:
        """Name of the web server's service unit."""

    @abstractmethod
    def module_enabled(self, module: str) -> bool:
        """Whether ``module`` is enabled."""

    @abstractmethod
    def site_enabled(self, site: str) -> bool:
        """Whether ``site`` is enabled."""

    @abstractmethod
    def enable_module(self, module: str) -> Receipt:
        """Enable ``module``."""

    @abstractmethod
    def enable_site(self, site: str) -> Receipt:
        """Enable ``site``."""

    @abstractmethod
    def disable_site(self, site: str) -> Receipt:
        """Disable ``site``. Disabling a disabled site is a no-op."""


class CertificateIssuer(Adapter):
    """Key and self-signed certificate generation."""

    @abstractmethod
    def ensure_key_pair(self, key_path: str) -> Receipt:
        """Generate a private key at ``key_path`` unless one exists."""

    @abstractmethod
    def ensure_certificate(
        self,
        key_path: str,
        cert_path: str,
        subject: Mapping[str, str],
        validity_days: int,
    ) -> Receipt:
        """Self-sign a certificate for the key unless ``cert_path`` exists."""


class ReleaseFetcher(Adapter):
    """Downloads application release archives."""

    @abstractmethod
    def fetch(self, url: str, dest: str) -> Receipt:
        """Download ``url`` to ``dest``. A partial download never lands at ``dest``."""


class Notifier(Adapter):
    """Operator notification once the stack is live."""

    @abstractmethod
    def open_url(self, url: str) -> Receipt:
        """Point the operator at ``url`` (browser launch, best effort)."""
