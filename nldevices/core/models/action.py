"""
ActionResult — the handler execution contract.

The engine hands a handler one action; the handler answers with an
ActionResult. Never exceptions: a failed apply is a result with
status='failed', and it stays local to that action.

Besides the outcome, a successful result carries the handler-declared
side effect (what changed) so the history writer can merge it into
DeviceState without knowing anything about the handler.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ActionResult(BaseModel):
    """Result of applying one recipe action on one device."""

    handler: str
    action: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    # What changed: category → key → value, package → install metadata
    optimizations: dict[str, dict[str, Any]] = Field(default_factory=dict)
    software: dict[str, dict[str, Any]] = Field(default_factory=dict)

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @property
    def has_changes(self) -> bool:
        return bool(self.optimizations or self.software)

    def summary_text(self) -> str:
        """One-line text stored in the session record."""
        if self.failed:
            return self.error or self.output or "failed"
        return self.output

    @classmethod
    def success(
        cls,
        handler: str,
        action: str,
        output: str = "",
        **kwargs: Any,
    ) -> ActionResult:
        """Create a success result."""
        return cls(handler=handler, action=action, status="ok", output=output, **kwargs)

    @classmethod
    def failure(
        cls,
        handler: str,
        action: str,
        error: str,
        **kwargs: Any,
    ) -> ActionResult:
        """Create a failure result."""
        return cls(handler=handler, action=action, status="failed", error=error, **kwargs)

    @classmethod
    def skip(
        cls,
        handler: str,
        action: str,
        reason: str = "",
        **kwargs: Any,
    ) -> ActionResult:
        """Create a skip result."""
        return cls(handler=handler, action=action, status="skipped", output=reason, **kwargs)
