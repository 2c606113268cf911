"""
Mock handler — universal test double for action handlers.

Simulates a device that remembers what was applied: verify answers
SATISFIED for actions that were applied earlier, so running the same
recipe twice behaves like a real idempotent device. Configurable to
fail specific actions or to force a verify verdict.
"""

from __future__ import annotations

from typing import Any

from nldevices.adapters.base import Handler, HandlerContext, Verdict
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import OSType


class MockHandler(Handler):
    """Universal mock handler for testing.

    By default, apply succeeds and records ``params`` as the change;
    verify is UNSATISFIED until the action has been applied once.
    """

    default_category = "mock"

    def __init__(
        self,
        module_name: str = "mock",
        platforms: frozenset[OSType] | None = None,
        remember: bool = True,
    ):
        self._module = module_name
        self._platforms = platforms or frozenset({OSType.LINUX, OSType.WINDOWS, OSType.MACOS})
        self._remember = remember
        self._applied: set[str] = set()
        self._failures: dict[str, str] = {}
        self._verdicts: dict[str, Verdict] = {}
        self._post_verdicts: dict[str, Verdict] = {}
        self._call_log: list[HandlerContext] = []
        self._verify_log: list[HandlerContext] = []

    @property
    def module(self) -> str:
        return self._module

    @property
    def platforms(self) -> frozenset[OSType]:
        return self._platforms

    @property
    def call_log(self) -> list[HandlerContext]:
        """All contexts apply() has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times apply has been called."""
        return len(self._call_log)

    @property
    def applied_actions(self) -> list[str]:
        return [ctx.action for ctx in self._call_log]

    @property
    def verify_log(self) -> list[HandlerContext]:
        return self._verify_log

    def set_failure(self, action: str, error: str = "Mock failure") -> None:
        """Configure a specific action to fail on apply."""
        self._failures[action] = error

    def clear_failure(self, action: str) -> None:
        self._failures.pop(action, None)

    def set_verdict(self, action: str, verdict: Verdict) -> None:
        """Force the verify verdict for an action."""
        self._verdicts[action] = verdict

    def set_post_verdict(self, action: str, verdict: Verdict) -> None:
        """Force the verdict returned after the action has been applied."""
        self._post_verdicts[action] = verdict

    def drift(self, action: str) -> None:
        """Forget that an action was applied (external change on the device)."""
        self._applied.discard(action)

    def has_probe(self, ctx: HandlerContext) -> bool:
        return True

    def verify(self, ctx: HandlerContext) -> Verdict:
        self._verify_log.append(ctx)
        if ctx.action in self._applied and ctx.action in self._post_verdicts:
            return self._post_verdicts[ctx.action]
        if ctx.action in self._verdicts:
            return self._verdicts[ctx.action]
        return Verdict.SATISFIED if ctx.action in self._applied else Verdict.UNSATISFIED

    def apply(self, ctx: HandlerContext) -> ActionResult:
        self._call_log.append(ctx)

        if ctx.action in self._failures:
            return self.fail(ctx, self._failures[ctx.action])

        if self._remember:
            self._applied.add(ctx.action)
        changes: dict[str, Any] = {str(k): v for k, v in ctx.params.items()}
        return self.ok(
            ctx,
            output=f"[mock] {self._module}:{ctx.action} applied",
            optimizations={self.category_for(ctx): changes} if changes else {},
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call logs, device memory and configured responses."""
        self._call_log.clear()
        self._verify_log.clear()
        self._applied.clear()
        self._failures.clear()
        self._verdicts.clear()
        self._post_verdicts.clear()
