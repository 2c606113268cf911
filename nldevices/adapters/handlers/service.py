"""
Service handler — desired run state of a system service.

systemd on Linux, the Service Control Manager on Windows. A service is
described by its run state (running/stopped) and, optionally, whether
it starts at boot.
"""

from __future__ import annotations

import shlex
import time

from nldevices.adapters.base import Handler, HandlerContext, Verdict, normalize
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import OSType

STATES = {"running", "stopped"}


class ServiceHandler(Handler):
    """Start/stop and enable/disable a service.

    Action params:
        name (str): Service unit or name (e.g. 'irqbalance', 'WSearch').
        state (str): 'running' or 'stopped' (default: running).
        enabled (bool): Start at boot. Omit to leave boot config alone.
    """

    default_category = "services"

    @property
    def module(self) -> str:
        return "service"

    @property
    def platforms(self) -> frozenset[OSType]:
        return frozenset({OSType.LINUX, OSType.WINDOWS})

    def validate(self, ctx: HandlerContext) -> tuple[bool, str]:
        if not ctx.params.get("name"):
            return False, "Missing required param: 'name'"
        state = ctx.params.get("state", "running")
        if state not in STATES:
            return False, f"Invalid state '{state}'. Valid: running, stopped"
        return True, ""

    def _desired(self, ctx: HandlerContext) -> tuple[str, bool | None]:
        return ctx.params.get("state", "running"), ctx.params.get("enabled")

    def probe(self, ctx: HandlerContext) -> Verdict:
        name = ctx.params.get("name")
        if not name:
            return Verdict.INDETERMINATE
        state, enabled = self._desired(ctx)

        if ctx.platform is OSType.WINDOWS:
            script = (
                f"$s = Get-Service -Name '{name}' -ErrorAction Stop; "
                "Write-Output (\"$($s.Status) $($s.StartType)\")"
            )
            result = ctx.run_powershell(script)
            if result.transport_error or result.exit_code != 0:
                return Verdict.INDETERMINATE
            parts = normalize(result.stdout).split(" ")
            current_state = "running" if parts[0] == "Running" else "stopped"
            current_enabled = len(parts) > 1 and parts[1] in {"Automatic", "AutomaticDelayedStart"}
        else:
            unit = shlex.quote(str(name))
            result = ctx.run(f"systemctl is-active {unit}; systemctl is-enabled {unit}")
            if result.transport_error:
                return Verdict.INDETERMINATE
            lines = result.stdout.split()
            if not lines:
                return Verdict.INDETERMINATE
            current_state = "running" if lines[0] == "active" else "stopped"
            current_enabled = len(lines) > 1 and lines[1] == "enabled"

        if current_state != state:
            return Verdict.UNSATISFIED
        if enabled is not None and bool(enabled) != current_enabled:
            return Verdict.UNSATISFIED
        return Verdict.SATISFIED

    def apply(self, ctx: HandlerContext) -> ActionResult:
        name = str(ctx.params["name"])
        state, enabled = self._desired(ctx)
        start = time.monotonic()

        if ctx.platform is OSType.WINDOWS:
            steps = []
            if enabled is not None:
                start_type = "Automatic" if enabled else "Disabled"
                steps.append(f"Set-Service -Name '{name}' -StartupType {start_type}")
            if state == "running":
                steps.append(f"Start-Service -Name '{name}'")
            else:
                steps.append(f"Stop-Service -Name '{name}' -Force")
            result = ctx.run_powershell("; ".join(steps))
        else:
            unit = shlex.quote(name)
            steps = []
            if enabled is not None:
                steps.append(f"sudo systemctl {'enable' if enabled else 'disable'} {unit}")
            steps.append(f"sudo systemctl {'start' if state == 'running' else 'stop'} {unit}")
            result = ctx.run(" && ".join(steps))

        recorded = state if enabled is None else f"{state},{'enabled' if enabled else 'disabled'}"
        return self.from_command(ctx, result, start, changes={name: recorded})
