"""
Session model — one execution attempt of a recipe on a device.

Serialized to devices/<hostname>/history/<session_id>-<recipe>.yml.
A session is persisted in_progress before any action runs, so an
interrupted run leaves a trace, and finalized exactly once. After that
the record is never edited: corrections happen through a new session.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field

from nldevices.core.models.device import utc_now


class SessionStatus(StrEnum):
    """Persisted session status."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.IN_PROGRESS


class Disposition(StrEnum):
    """Reconciler classification of a planned action."""

    ALREADY_SATISFIED = "already-satisfied"
    NEEDS_APPLY = "needs-apply"
    UNSUPPORTED = "unsupported-on-platform"


class ActionRecord(BaseModel):
    """Per-action line of a session record."""

    action: str
    result: Literal["success", "failed", "skipped"]
    output: str = ""
    disposition: Disposition | None = None


class SessionSummary(BaseModel):
    """Counts over a session's action records."""

    total_actions: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def tally(cls, records: list[ActionRecord]) -> SessionSummary:
        return cls(
            total_actions=len(records),
            succeeded=sum(1 for r in records if r.result == "success"),
            failed=sum(1 for r in records if r.result == "failed"),
            skipped=sum(1 for r in records if r.result == "skipped"),
        )

    def final_status(self) -> SessionStatus:
        """Zero failures → success; failures next to anything else → partial."""
        if self.failed == 0:
            return SessionStatus.SUCCESS
        if self.succeeded + self.skipped > 0:
            return SessionStatus.PARTIAL
        return SessionStatus.FAILED


class Session(BaseModel):
    """Root history record for one run."""

    session_id: str
    executed_by: str = "nldevices"
    recipe: str
    hostname: str
    started: datetime = Field(default_factory=utc_now)
    completed: datetime | None = None
    status: SessionStatus = SessionStatus.IN_PROGRESS
    actions: list[ActionRecord] = Field(default_factory=list)
    summary: SessionSummary = Field(default_factory=SessionSummary)
    error: str | None = None

    # Deltas to merge into DeviceState on finalization. Kept out of the
    # persisted record; only outcomes are history.
    optimizations: dict[str, dict] = Field(default_factory=dict, exclude=True)
    software: dict[str, dict] = Field(default_factory=dict, exclude=True)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def failed_actions(self) -> list[str]:
        return [r.action for r in self.actions if r.result == "failed"]

    def record(self, entry: ActionRecord) -> None:
        self.actions.append(entry)

    def finalize(self, status: SessionStatus | None = None, error: str | None = None) -> None:
        """Tally the action records and close the session."""
        self.summary = SessionSummary.tally(self.actions)
        self.status = status or self.summary.final_status()
        if error:
            self.error = error
        self.completed = utc_now()
