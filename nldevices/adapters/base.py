"""
Handler base — the contract between the engine and OS actions.

Every recipe action names a ``module`` (sysctl, registry, command, ...).
For each (module, platform) pair there is one Handler with two
operations:

    verify(ctx) → Verdict        is the desired state already there?
    apply(ctx)  → ActionResult   make it so

The engine only talks to handlers through this protocol and only
reaches the device through the transport carried by the context.
Handlers NEVER raise: failures are captured in the ActionResult, and a
probe that cannot run answers Verdict.INDETERMINATE.
"""

from __future__ import annotations

import base64
import logging
import time
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from nldevices.adapters.transport.base import CommandResult, Credentials, Transport
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import Device, OSType
from nldevices.core.models.recipe import VerifySpec

logger = logging.getLogger(__name__)


class Verdict(StrEnum):
    """Answer of a verify probe."""

    SATISFIED = "satisfied"
    UNSATISFIED = "unsatisfied"
    INDETERMINATE = "indeterminate"   # the probe itself failed


def powershell(script: str) -> str:
    """Wrap a PowerShell script so it survives cmd.exe and ssh quoting."""
    encoded = base64.b64encode(script.encode("utf-16-le")).decode("ascii")
    return f"powershell -NoProfile -NonInteractive -EncodedCommand {encoded}"


def normalize(value: Any) -> str:
    """Collapse whitespace so '1024\\t65535' matches '1024 65535'."""
    return " ".join(str(value).split())


class HandlerContext(BaseModel):
    """Everything a handler needs to act on one device.

    This is the handler's view of the world: the action, its
    parameters and verify probe, a read-only device snapshot, and the
    transport to reach it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    action: str
    device: Device
    transport: Transport
    params: dict[str, Any] = Field(default_factory=dict)
    verify: VerifySpec | None = None
    category: str | None = None
    command_timeout: float | None = None
    identity_file: str | None = None

    @property
    def platform(self) -> OSType:
        return self.device.os

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            user=self.device.ssh_user,
            port=self.device.ssh_port,
            identity_file=self.identity_file,
        )

    def run(self, command: str) -> CommandResult:
        """Run a shell command on the device."""
        return self.transport.execute(
            self.device.hostname,
            self.credentials,
            command,
            timeout=self.command_timeout,
        )

    def run_powershell(self, script: str) -> CommandResult:
        """Run a PowerShell script on a Windows device."""
        return self.run(powershell(script))

    def run_native(self, script: str) -> CommandResult:
        """Run a verify/command string in the platform's natural shell."""
        if self.platform is OSType.WINDOWS:
            return self.run_powershell(script)
        return self.run(script)


class Handler(ABC):
    """Abstract base class for all action handlers.

    To create a new handler:
        1. Subclass Handler
        2. Implement module, platforms, apply (and usually probe)
        3. Register it in the HandlerRegistry
    """

    # Default DeviceState.optimizations bucket for recorded changes
    default_category: str = "system"

    @property
    @abstractmethod
    def module(self) -> str:
        """The module kind this handler implements (e.g. 'sysctl')."""

    @property
    @abstractmethod
    def platforms(self) -> frozenset[OSType]:
        """Platforms this handler can act on."""

    def is_available(self) -> bool:
        """Whether the handler can run at all from this operator machine."""
        return True

    def validate(self, ctx: HandlerContext) -> tuple[bool, str]:
        """Check required params before touching the device.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """
        return True, ""

    @abstractmethod
    def apply(self, ctx: HandlerContext) -> ActionResult:
        """Bring the device to the desired state. MUST never raise."""

    def probe(self, ctx: HandlerContext) -> Verdict:
        """Built-in state check used when the recipe declares no verify.

        Handlers without a reliable probe keep this default, which makes
        the engine apply every time.
        """
        return Verdict.INDETERMINATE

    def has_probe(self, ctx: HandlerContext) -> bool:
        """Whether verify() can say anything beyond INDETERMINATE."""
        return ctx.verify is not None or type(self).probe is not Handler.probe

    def verify(self, ctx: HandlerContext) -> Verdict:
        """Test the current state. The recipe's verify spec wins over probe()."""
        if ctx.verify is None:
            return self.probe(ctx)
        result = ctx.run_native(ctx.verify.command)
        if result.transport_error:
            logger.debug("verify probe for %s could not run: %s", ctx.action, result.message)
            return Verdict.INDETERMINATE
        if ctx.verify.expect is None:
            return Verdict.SATISFIED if result.exit_code == 0 else Verdict.UNSATISFIED
        if result.exit_code != 0:
            return Verdict.UNSATISFIED
        matched = normalize(result.stdout) == normalize(ctx.verify.expect)
        return Verdict.SATISFIED if matched else Verdict.UNSATISFIED

    # ── Result helpers ──────────────────────────────────────────

    def category_for(self, ctx: HandlerContext) -> str:
        return ctx.category or self.default_category

    def ok(self, ctx: HandlerContext, output: str = "", **kwargs: Any) -> ActionResult:
        return ActionResult.success(self.module, ctx.action, output=output, **kwargs)

    def fail(self, ctx: HandlerContext, error: str, **kwargs: Any) -> ActionResult:
        return ActionResult.failure(self.module, ctx.action, error=error, **kwargs)

    def from_command(
        self,
        ctx: HandlerContext,
        result: CommandResult,
        started: float,
        changes: dict[str, Any] | None = None,
        software: dict[str, dict[str, Any]] | None = None,
    ) -> ActionResult:
        """Turn a CommandResult into an ActionResult, recording changes on success."""
        elapsed_ms = int((time.monotonic() - started) * 1000)
        if not result.ok:
            return self.fail(
                ctx,
                result.message,
                duration_ms=elapsed_ms,
                metadata={"exit_code": result.exit_code, "transport_error": result.transport_error},
            )
        return self.ok(
            ctx,
            output=result.stdout.strip(),
            duration_ms=elapsed_ms,
            optimizations={self.category_for(ctx): changes} if changes else {},
            software=software or {},
            metadata={"exit_code": result.exit_code},
        )

    def __repr__(self) -> str:
        platforms = ",".join(sorted(self.platforms))
        return f"<{self.__class__.__name__} module={self.module!r} platforms={platforms}>"
