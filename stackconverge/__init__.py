"""stack-converge — idempotent single-host web stack provisioning."""

__version__ = "0.1.0"
