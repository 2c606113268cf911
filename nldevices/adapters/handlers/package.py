"""
Package handler — install software through the platform package manager.

apt on Linux, winget on Windows, Homebrew on macOS. Installed packages
are recorded under DeviceState.software rather than optimizations.
"""

from __future__ import annotations

import shlex
import time

from nldevices.adapters.base import Handler, HandlerContext, Verdict
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import OSType, utc_now

_MANAGERS = {
    OSType.LINUX: "apt",
    OSType.WINDOWS: "winget",
    OSType.MACOS: "brew",
}


class PackageHandler(Handler):
    """Install a package.

    Action params:
        name (str): Package name (apt/brew) or winget id.
        version (str): Optional pinned version.
        manager (str): Override the platform default manager.
    """

    default_category = "software"

    @property
    def module(self) -> str:
        return "package"

    @property
    def platforms(self) -> frozenset[OSType]:
        return frozenset(_MANAGERS)

    def validate(self, ctx: HandlerContext) -> tuple[bool, str]:
        if not ctx.params.get("name"):
            return False, "Missing required param: 'name'"
        manager = self._manager(ctx)
        if manager not in {"apt", "winget", "brew"}:
            return False, f"Unsupported package manager '{manager}'"
        return True, ""

    def _manager(self, ctx: HandlerContext) -> str:
        return ctx.params.get("manager") or _MANAGERS.get(ctx.platform, "")

    def probe(self, ctx: HandlerContext) -> Verdict:
        name = ctx.params.get("name")
        if not name:
            return Verdict.INDETERMINATE
        manager = self._manager(ctx)
        quoted = shlex.quote(str(name))
        if manager == "apt":
            result = ctx.run(f"dpkg-query -W -f='${{Status}}' {quoted} 2>/dev/null")
            if result.transport_error:
                return Verdict.INDETERMINATE
            installed = result.exit_code == 0 and "install ok installed" in result.stdout
            return Verdict.SATISFIED if installed else Verdict.UNSATISFIED
        if manager == "winget":
            result = ctx.run(f"winget list --id {name} -e --accept-source-agreements")
        elif manager == "brew":
            result = ctx.run(f"brew list --versions {quoted}")
        else:
            return Verdict.INDETERMINATE
        if result.transport_error:
            return Verdict.INDETERMINATE
        return Verdict.SATISFIED if result.exit_code == 0 else Verdict.UNSATISFIED

    def apply(self, ctx: HandlerContext) -> ActionResult:
        name = str(ctx.params["name"])
        version = ctx.params.get("version")
        manager = self._manager(ctx)
        start = time.monotonic()

        if manager == "apt":
            target = f"{name}={version}" if version else name
            command = (
                "sudo DEBIAN_FRONTEND=noninteractive apt-get install -y "
                f"{shlex.quote(target)}"
            )
        elif manager == "winget":
            command = (
                f"winget install --id {name} -e --silent "
                "--accept-package-agreements --accept-source-agreements"
            )
            if version:
                command += f" --version {version}"
        else:
            command = f"brew install {shlex.quote(name)}"

        result = ctx.run(command)
        info = {"manager": manager, "installed_at": utc_now().isoformat()}
        if version:
            info["version"] = str(version)
        return self.from_command(ctx, result, start, software={name: info})
