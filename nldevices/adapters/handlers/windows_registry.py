"""
Registry handler — Windows registry values.

Creates the key if it is missing, then sets the value with the given
type. The built-in probe reads the value back and compares it as text,
so DWORDs declared as 0/1 in a recipe match what PowerShell prints.
"""

from __future__ import annotations

import time

from nldevices.adapters.base import Handler, HandlerContext, Verdict, normalize
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import OSType

VALUE_TYPES = {"String", "ExpandString", "Binary", "DWord", "MultiString", "QWord"}


def _ps_quote(value: object) -> str:
    """Single-quoted PowerShell literal."""
    return "'" + str(value).replace("'", "''") + "'"


class RegistryHandler(Handler):
    """Set a registry value.

    Action params:
        path (str): Key path, e.g. 'HKLM:\\SYSTEM\\CurrentControlSet\\...'.
        name (str): Value name.
        value: Target value.
        type (str): One of String, ExpandString, Binary, DWord,
            MultiString, QWord (default: DWord).
    """

    default_category = "registry"

    @property
    def module(self) -> str:
        return "registry"

    @property
    def platforms(self) -> frozenset[OSType]:
        return frozenset({OSType.WINDOWS})

    def validate(self, ctx: HandlerContext) -> tuple[bool, str]:
        for required in ("path", "name", "value"):
            if required not in ctx.params:
                return False, f"Missing required param: '{required}'"
        value_type = ctx.params.get("type", "DWord")
        if value_type not in VALUE_TYPES:
            return False, f"Unknown registry type '{value_type}'. Valid: {', '.join(sorted(VALUE_TYPES))}"
        return True, ""

    def probe(self, ctx: HandlerContext) -> Verdict:
        if not {"path", "name", "value"} <= ctx.params.keys():
            return Verdict.INDETERMINATE
        path, name = _ps_quote(ctx.params["path"]), _ps_quote(ctx.params["name"])
        script = (
            f"try {{ Get-ItemPropertyValue -Path {path} -Name {name} -ErrorAction Stop }} "
            f"catch {{ exit 3 }}"
        )
        result = ctx.run_powershell(script)
        if result.transport_error:
            return Verdict.INDETERMINATE
        if result.exit_code == 3:
            return Verdict.UNSATISFIED
        if result.exit_code != 0:
            return Verdict.INDETERMINATE
        if normalize(result.stdout) == normalize(ctx.params["value"]):
            return Verdict.SATISFIED
        return Verdict.UNSATISFIED

    def apply(self, ctx: HandlerContext) -> ActionResult:
        path = ctx.params["path"]
        name = ctx.params["name"]
        value = ctx.params["value"]
        value_type = ctx.params.get("type", "DWord")
        start = time.monotonic()

        script = (
            f"if (-not (Test-Path {_ps_quote(path)})) "
            f"{{ New-Item -Path {_ps_quote(path)} -Force | Out-Null }}; "
            f"New-ItemProperty -Path {_ps_quote(path)} -Name {_ps_quote(name)} "
            f"-Value {_ps_quote(value)} -PropertyType {value_type} -Force | Out-Null"
        )
        result = ctx.run_powershell(script)
        return self.from_command(ctx, result, start, changes={f"{path}\\{name}": value})
