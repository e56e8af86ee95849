"""
Error taxonomy for the provisioning engine.

Adapters report operational failures through Receipts, not exceptions.
These exceptions cover the cases where a value cannot be returned at all:
a probe that cannot tell whether its target holds, a configuration that
cannot be used, or a second run competing for the same host.
"""

from __future__ import annotations


class StackConvergeError(Exception):
    """Base class for all errors raised by stack-converge."""


class PreconditionCheckFailed(StackConvergeError):
    """A probe could not determine the current state of its target.

    Never treated as "not satisfied": an unreadable file or a query
    command that cannot run is a hard failure for the action.
    """


class MutationFailed(StackConvergeError):
    """An external command or operation failed while changing state."""

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        base = super().__str__()
        if self.diagnostic:
            return f"{base}\n{self.diagnostic}"
        return base


class ConfigurationInvalid(StackConvergeError):
    """A required configuration value is missing or malformed."""


class LockHeld(StackConvergeError):
    """Another provisioning run already holds the host lock."""
