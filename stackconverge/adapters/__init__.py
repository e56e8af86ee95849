"""Adapters — bindings for the host's external systems.

Public re-exports for convenient access.
"""

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
from stackconverge.adapters.registry import HostAdapters, local_adapters

__all__ = [
    "Adapter",
    "CertificateIssuer",
    "Database",
    "FileSystem",
    "HostAdapters",
    "Notifier",
    "PackageManager",
    "ReleaseFetcher",
    "ServiceControl",
    "WebServer",
    "local_adapters",
]
