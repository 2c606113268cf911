"""
Command handler — run an arbitrary command on the device.

The escape hatch for anything without a dedicated handler. On Windows
the command is run as PowerShell, elsewhere through the login shell.
Since a raw command has no built-in probe, recipes should give it a
``verify``; otherwise it is applied on every run.
"""

from __future__ import annotations

import time

from nldevices.adapters.base import Handler, HandlerContext
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import OSType


class CommandHandler(Handler):
    """Execute a command and capture its output.

    Action params:
        command (str): The command to execute.
        record (dict): Declared effect merged into DeviceState on success,
            e.g. ``{tcp_autotuning: disabled}``.
    """

    default_category = "system"

    @property
    def module(self) -> str:
        return "command"

    @property
    def platforms(self) -> frozenset[OSType]:
        return frozenset({OSType.LINUX, OSType.WINDOWS, OSType.MACOS})

    def validate(self, ctx: HandlerContext) -> tuple[bool, str]:
        if not ctx.params.get("command"):
            return False, "Missing required param: 'command'"
        record = ctx.params.get("record", {})
        if not isinstance(record, dict):
            return False, "Param 'record' must be a mapping"
        return True, ""

    def apply(self, ctx: HandlerContext) -> ActionResult:
        start = time.monotonic()
        result = ctx.run_native(ctx.params["command"])
        return self.from_command(ctx, result, start, changes=dict(ctx.params.get("record", {})))
