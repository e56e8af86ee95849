"""
Domain models — Pydantic types for the provisioning engine.

All models are re-exported here for convenient access:

    from stackconverge.core.models import Configuration, Outcome, Receipt, FileExists
"""

from stackconverge.core.models.config import Configuration
from stackconverge.core.models.outcome import Outcome, PipelineResult
from stackconverge.core.models.receipt import Receipt
from stackconverge.core.models.state import HostState, RunRecord, StepState
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

__all__ = [
    # config.py
    "Configuration",
    # target.py
    "DatabaseExists",
    "DatabaseUserExists",
    "FileContains",
    "FileContent",
    "FileExists",
    # state.py
    "HostState",
    "NoPendingUpgrades",
    # outcome.py
    "Outcome",
    "PackageIndexFresh",
    "PackageInstalled",
    "PipelineResult",
    # receipt.py
    "Receipt",
    "Refresh",
    "RunRecord",
    "ServiceActive",
    "ServiceEnabled",
    "StepState",
    "Target",
    "WebModuleEnabled",
    "WebSiteDisabled",
    "WebSiteEnabled",
]
