"""
Receipt model — the result contract between the engine and adapters.

Every mutating adapter call returns a Receipt. Adapters never raise for
operational failures: a failed install, a non-zero exit status or an
unreachable download all come back as a Receipt with status='failed'
and the diagnostic text the operator needs.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from stackconverge.core.errors import MutationFailed


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Receipt(BaseModel):
    """Result of a single adapter mutation."""

    adapter: str
    operation: str
    status: Literal["ok", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    command: str | None = None
    return_code: int | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the mutation succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the mutation failed."""
        return self.status == "failed"

    @property
    def diagnostic(self) -> str:
        """Everything an operator needs to understand a failure."""
        parts = [f"{self.adapter}:{self.operation} failed"]
        if self.command:
            parts.append(f"command: {self.command}")
        if self.return_code is not None:
            parts.append(f"exit status: {self.return_code}")
        if self.error:
            parts.append(self.error)
        if self.output:
            parts.append(self.output)
        return "\n".join(parts)

    def raise_for_status(self) -> Receipt:
        """Raise MutationFailed if this receipt describes a failure."""
        if self.failed:
            raise MutationFailed(
                f"{self.adapter}:{self.operation} failed",
                diagnostic=self.error or self.output,
            )
        return self

    @classmethod
    def success(
        cls,
        adapter: str,
        operation: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            operation=operation,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        operation: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            operation=operation,
            status="failed",
            error=error,
            **kwargs,
        )
