"""
Network handlers — QoS marking and firewall openings.

Audio-over-IP (Dante, NDI, VBAN) needs its traffic marked for priority
and its ports reachable. Both are expressed as named rules so the probe
can look them up by name.
"""

from __future__ import annotations

import shlex
import time

from nldevices.adapters.base import Handler, HandlerContext, Verdict
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import OSType


class QosHandler(Handler):
    """Create a DSCP marking policy (Windows NetQos).

    Action params:
        name (str): Policy name.
        dscp (int): DSCP value (e.g. 46 for EF, 56 for Dante PTP).
        protocol (str): 'UDP' or 'TCP' (default: UDP).
        port_start (int), port_end (int): Destination port range.
        app (str): Optional application path to match instead of ports.
    """

    default_category = "network"

    @property
    def module(self) -> str:
        return "qos"

    @property
    def platforms(self) -> frozenset[OSType]:
        return frozenset({OSType.WINDOWS})

    def validate(self, ctx: HandlerContext) -> tuple[bool, str]:
        for required in ("name", "dscp"):
            if required not in ctx.params:
                return False, f"Missing required param: '{required}'"
        dscp = ctx.params["dscp"]
        if not isinstance(dscp, int) or not 0 <= dscp <= 63:
            return False, "Param 'dscp' must be an integer 0-63"
        return True, ""

    def probe(self, ctx: HandlerContext) -> Verdict:
        name = ctx.params.get("name")
        if not name:
            return Verdict.INDETERMINATE
        script = (
            f"$p = Get-NetQosPolicy -Name '{name}' -ErrorAction SilentlyContinue; "
            "if ($null -eq $p) { exit 3 }; Write-Output $p.DSCPAction"
        )
        result = ctx.run_powershell(script)
        if result.transport_error:
            return Verdict.INDETERMINATE
        if result.exit_code == 3:
            return Verdict.UNSATISFIED
        if result.exit_code != 0:
            return Verdict.INDETERMINATE
        return Verdict.SATISFIED if result.stdout.strip() == str(ctx.params.get("dscp")) else Verdict.UNSATISFIED

    def apply(self, ctx: HandlerContext) -> ActionResult:
        name = ctx.params["name"]
        dscp = ctx.params["dscp"]
        protocol = ctx.params.get("protocol", "UDP")
        start = time.monotonic()

        match = f"-IPProtocolMatchCondition {protocol}"
        if ctx.params.get("app"):
            match += f" -AppPathNameMatchCondition '{ctx.params['app']}'"
        if "port_start" in ctx.params:
            end = ctx.params.get("port_end", ctx.params["port_start"])
            match += (
                f" -IPDstPortStartMatchCondition {ctx.params['port_start']}"
                f" -IPDstPortEndMatchCondition {end}"
            )
        script = (
            f"Remove-NetQosPolicy -Name '{name}' -Confirm:$false -ErrorAction SilentlyContinue; "
            f"New-NetQosPolicy -Name '{name}' {match} -DSCPAction {dscp} "
            "-NetworkProfile All | Out-Null"
        )
        result = ctx.run_powershell(script)
        return self.from_command(ctx, result, start, changes={f"qos:{name}": dscp})


class FirewallHandler(Handler):
    """Allow inbound traffic on a port range.

    Action params:
        name (str): Rule name (Windows display name / ufw comment).
        port (int|str): Port or range ('4440:4460' on Linux, '4440-4460' on Windows).
        protocol (str): 'udp' or 'tcp' (default: udp).
    """

    default_category = "network"

    @property
    def module(self) -> str:
        return "firewall"

    @property
    def platforms(self) -> frozenset[OSType]:
        return frozenset({OSType.LINUX, OSType.WINDOWS})

    def validate(self, ctx: HandlerContext) -> tuple[bool, str]:
        for required in ("name", "port"):
            if required not in ctx.params:
                return False, f"Missing required param: '{required}'"
        return True, ""

    def _protocol(self, ctx: HandlerContext) -> str:
        return str(ctx.params.get("protocol", "udp")).lower()

    def probe(self, ctx: HandlerContext) -> Verdict:
        name = ctx.params.get("name")
        if not name:
            return Verdict.INDETERMINATE
        if ctx.platform is OSType.WINDOWS:
            result = ctx.run_powershell(
                f"if (Get-NetFirewallRule -DisplayName '{name}' -ErrorAction SilentlyContinue) "
                "{ exit 0 } else { exit 3 }"
            )
        else:
            result = ctx.run(f"sudo ufw status | grep -F -- {shlex.quote(str(name))}")
        if result.transport_error:
            return Verdict.INDETERMINATE
        return Verdict.SATISFIED if result.exit_code == 0 else Verdict.UNSATISFIED

    def apply(self, ctx: HandlerContext) -> ActionResult:
        name = str(ctx.params["name"])
        port = str(ctx.params["port"])
        protocol = self._protocol(ctx)
        start = time.monotonic()

        if ctx.platform is OSType.WINDOWS:
            result = ctx.run_powershell(
                f"New-NetFirewallRule -DisplayName '{name}' -Direction Inbound "
                f"-Protocol {protocol.upper()} -LocalPort {port.replace(':', '-')} "
                "-Action Allow | Out-Null"
            )
        else:
            result = ctx.run(
                f"sudo ufw allow {shlex.quote(port.replace('-', ':'))}/{protocol} "
                f"comment {shlex.quote(name)}"
            )
        return self.from_command(ctx, result, start, changes={f"firewall:{name}": f"{port}/{protocol}"})
