"""
Power handler — keep CPUs out of power-saving states.

On Linux this sets the cpufreq scaling governor on every core; on
Windows it activates a power scheme (High/Ultimate Performance).
"""

from __future__ import annotations

import re
import shlex
import time

from nldevices.adapters.base import Handler, HandlerContext, Verdict
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import OSType

GOVERNOR_GLOB = "/sys/devices/system/cpu/cpu*/cpufreq/scaling_governor"

# Well-known Windows scheme aliases
SCHEMES = {
    "high-performance": "8c5e7fda-e8bf-4a96-9a85-a6e23a8c635c",
    "balanced": "381b4222-f694-41f0-9685-ff5bb260df2e",
    "ultimate-performance": "e9a42b02-d5df-448d-aa00-03f14749eb61",
}

_GUID = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.I)


class PowerHandler(Handler):
    """Set the CPU governor or Windows power scheme.

    Action params:
        governor (str): Linux scaling governor (default: performance).
        scheme (str): Windows scheme GUID or alias (default: high-performance).
    """

    default_category = "power"

    @property
    def module(self) -> str:
        return "power"

    @property
    def platforms(self) -> frozenset[OSType]:
        return frozenset({OSType.LINUX, OSType.WINDOWS})

    def _scheme(self, ctx: HandlerContext) -> str:
        scheme = str(ctx.params.get("scheme", "high-performance"))
        return SCHEMES.get(scheme, scheme).lower()

    def validate(self, ctx: HandlerContext) -> tuple[bool, str]:
        if ctx.platform is OSType.WINDOWS and not _GUID.fullmatch(self._scheme(ctx)):
            return False, f"Unknown power scheme '{ctx.params.get('scheme')}'"
        return True, ""

    def probe(self, ctx: HandlerContext) -> Verdict:
        if ctx.platform is OSType.WINDOWS:
            result = ctx.run("powercfg /getactivescheme")
            if result.transport_error or result.exit_code != 0:
                return Verdict.INDETERMINATE
            match = _GUID.search(result.stdout)
            if match is None:
                return Verdict.INDETERMINATE
            return Verdict.SATISFIED if match.group(0).lower() == self._scheme(ctx) else Verdict.UNSATISFIED

        governor = ctx.params.get("governor", "performance")
        result = ctx.run(f"cat {GOVERNOR_GLOB} 2>/dev/null | sort -u")
        if result.transport_error:
            return Verdict.INDETERMINATE
        current = result.stdout.split()
        if not current:
            # No cpufreq on this machine (VMs): nothing to change
            return Verdict.INDETERMINATE
        return Verdict.SATISFIED if current == [governor] else Verdict.UNSATISFIED

    def apply(self, ctx: HandlerContext) -> ActionResult:
        start = time.monotonic()
        if ctx.platform is OSType.WINDOWS:
            scheme = self._scheme(ctx)
            result = ctx.run(f"powercfg /setactive {scheme}")
            return self.from_command(ctx, result, start, changes={"scheme": scheme})

        governor = str(ctx.params.get("governor", "performance"))
        command = (
            f"for g in {GOVERNOR_GLOB}; do "
            f"echo {shlex.quote(governor)} | sudo tee \"$g\" >/dev/null || exit 1; done"
        )
        result = ctx.run(command)
        return self.from_command(ctx, result, start, changes={"cpu_governor": governor})
