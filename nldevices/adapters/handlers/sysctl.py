"""
Sysctl handler — Linux kernel parameters.

Applies a value with ``sysctl -w`` and persists it to a drop-in file
under /etc/sysctl.d so it survives reboots. The built-in probe compares
``sysctl -n`` output with the target value, whitespace-normalized
(multi-value keys like ip_local_port_range print tab-separated).
"""

from __future__ import annotations

import logging
import shlex
import time

from nldevices.adapters.base import Handler, HandlerContext, Verdict, normalize
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import OSType

logger = logging.getLogger(__name__)

DEFAULT_CONF = "/etc/sysctl.d/99-nldevicessetup.conf"


class SysctlHandler(Handler):
    """Set and persist a kernel parameter.

    Action params:
        key (str): Parameter name, e.g. 'net.core.rmem_max'.
        value (str|int): Target value.
        persist (bool): Write to the drop-in file (default: True).
        conf_file (str): Drop-in path (default: 99-nldevicessetup.conf).
        sudo (bool): Prefix with sudo (default: True).
    """

    default_category = "kernel"

    @property
    def module(self) -> str:
        return "sysctl"

    @property
    def platforms(self) -> frozenset[OSType]:
        return frozenset({OSType.LINUX})

    def validate(self, ctx: HandlerContext) -> tuple[bool, str]:
        for required in ("key", "value"):
            if required not in ctx.params:
                return False, f"Missing required param: '{required}'"
        return True, ""

    def probe(self, ctx: HandlerContext) -> Verdict:
        key = ctx.params.get("key")
        if not key:
            return Verdict.INDETERMINATE
        result = ctx.run(f"sysctl -n {shlex.quote(str(key))}")
        if result.transport_error:
            return Verdict.INDETERMINATE
        if result.exit_code != 0:
            # Unknown key on this kernel: cannot be satisfied, let apply report it
            return Verdict.UNSATISFIED
        if normalize(result.stdout) == normalize(ctx.params["value"]):
            return Verdict.SATISFIED
        return Verdict.UNSATISFIED

    def apply(self, ctx: HandlerContext) -> ActionResult:
        key = str(ctx.params["key"])
        value = normalize(ctx.params["value"])
        sudo = "sudo " if ctx.params.get("sudo", True) else ""
        start = time.monotonic()

        command = f"{sudo}sysctl -w {shlex.quote(f'{key}={value}')}"
        if ctx.params.get("persist", True):
            command += " && " + self._persist_command(
                key, value, ctx.params.get("conf_file", DEFAULT_CONF), sudo,
            )

        result = ctx.run(command)
        return self.from_command(ctx, result, start, changes={key: value})

    @staticmethod
    def _persist_command(key: str, value: str, conf_file: str, sudo: str) -> str:
        """Replace the key's line in the drop-in file, or append it."""
        conf = shlex.quote(conf_file)
        line = shlex.quote(f"{key}={value}")
        pattern = shlex.quote(f"^{key.replace('.', '[.]')}=")
        sed_expr = shlex.quote(f"s|^{key.replace('.', '[.]')}=.*|{key}={value}|")
        return (
            f"{sudo}mkdir -p $(dirname {conf}) && "
            f"{sudo}touch {conf} && "
            f"if grep -q {pattern} {conf}; then {sudo}sed -i {sed_expr} {conf}; "
            f"else echo {line} | {sudo}tee -a {conf} >/dev/null; fi"
        )
