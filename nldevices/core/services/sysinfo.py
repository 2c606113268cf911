"""
System info — what registration learns about a device.

All probes go through the injected transport. Each platform probe
emits a machine-readable shape (key=value lines on Linux and macOS,
JSON on Windows) that is parsed here once into SystemInfo; nothing
downstream re-parses strings.
"""

from __future__ import annotations

import json
import logging
import socket
from dataclasses import dataclass, field

from nldevices.adapters.base import powershell
from nldevices.adapters.transport.base import Credentials, Transport
from nldevices.core.models.device import Hardware, OSType

logger = logging.getLogger(__name__)

_LINUX_PROBE = r"""
echo "hostname=$(hostname)"
if [ -f /etc/os-release ]; then . /etc/os-release; echo "os_version=$PRETTY_NAME"; fi
echo "kernel=$(uname -r)"
echo "cpu=$(grep -m1 'model name' /proc/cpuinfo | cut -d: -f2 | xargs)"
echo "memory_gb=$(free -g | awk '/^Mem:/{print $2}')"
for nic in $(ip -o link show | awk -F': ' '{print $2}'); do
  [ "$nic" = "lo" ] || echo "nic=${nic%%@*}"
done
"""

_MACOS_PROBE = r"""
echo "hostname=$(hostname -s)"
echo "os_version=$(sw_vers -productName) $(sw_vers -productVersion)"
echo "kernel=$(uname -r)"
echo "cpu=$(sysctl -n machdep.cpu.brand_string)"
echo "memory_gb=$(( $(sysctl -n hw.memsize) / 1073741824 ))"
for nic in $(networksetup -listallhardwareports | awk '/^Device:/{print $2}'); do
  echo "nic=$nic"
done
"""

_WINDOWS_PROBE = r"""
$os = Get-CimInstance Win32_OperatingSystem
$cpu = Get-CimInstance Win32_Processor | Select-Object -First 1
$nics = @(Get-NetAdapter | Where-Object { $_.Status -eq 'Up' } | Select-Object -ExpandProperty Name)
[pscustomobject]@{
    hostname   = $env:COMPUTERNAME
    os_version = "$($os.Caption) $($os.Version)"
    kernel     = $os.Version
    cpu        = $cpu.Name
    memory_gb  = [math]::Round($os.TotalVisibleMemorySize / 1MB, 0)
    nics       = $nics
} | ConvertTo-Json -Compress
"""


@dataclass
class SystemInfo:
    """Facts gathered from a live device."""

    hostname: str = ""
    os: OSType = OSType.UNKNOWN
    os_version: str = "unknown"
    kernel: str = ""
    cpu: str = "unknown"
    memory_gb: int = 0
    nics: list[str] = field(default_factory=list)

    @property
    def hardware(self) -> Hardware:
        return Hardware(cpu=self.cpu, memory_gb=self.memory_gb, nics=list(self.nics))

    def to_dict(self) -> dict:
        return {
            "hostname": self.hostname,
            "os": str(self.os),
            "os_version": self.os_version,
            "kernel": self.kernel,
            "cpu": self.cpu,
            "memory_gb": self.memory_gb,
            "nics": list(self.nics),
        }


def classify_uname(output: str) -> OSType:
    """Map ``uname -s`` output to an OS family."""
    value = output.strip().upper()
    if value.startswith("LINUX"):
        return OSType.LINUX
    if value.startswith("DARWIN"):
        return OSType.MACOS
    if value.startswith(("CYGWIN", "MINGW", "MSYS", "WINDOWS")):
        return OSType.WINDOWS
    return OSType.UNKNOWN


def detect_os(transport: Transport, hostname: str, credentials: Credentials) -> OSType:
    """Ask the device what it is. Windows has no uname, hence the fallback echo."""
    result = transport.execute(hostname, credentials, "uname -s 2>/dev/null || echo WINDOWS")
    if result.transport_error:
        logger.warning("OS detection on %s failed: %s", hostname, result.message)
        return OSType.UNKNOWN
    return classify_uname(result.stdout)


def gather_system_info(
    transport: Transport,
    hostname: str,
    credentials: Credentials,
    os_type: OSType,
) -> SystemInfo:
    """Run the platform probe and parse it. Probe failures yield defaults."""
    if os_type is OSType.WINDOWS:
        result = transport.execute(hostname, credentials, powershell(_WINDOWS_PROBE))
        parse = parse_windows_info
    elif os_type is OSType.MACOS:
        result = transport.execute(hostname, credentials, _MACOS_PROBE)
        parse = parse_key_values
    elif os_type is OSType.LINUX:
        result = transport.execute(hostname, credentials, _LINUX_PROBE)
        parse = parse_key_values
    else:
        return SystemInfo(hostname=hostname, os=os_type)

    if not result.ok:
        logger.warning("System info probe on %s failed: %s", hostname, result.message)
        return SystemInfo(hostname=hostname, os=os_type)

    info = parse(result.stdout)
    info.os = os_type
    info.hostname = info.hostname or hostname
    return info


def parse_key_values(output: str) -> SystemInfo:
    """Parse ``key=value`` lines; ``nic`` may repeat."""
    info = SystemInfo()
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key, value = key.strip(), value.strip().strip('"')
        if key == "nic":
            if value:
                info.nics.append(value)
        elif key == "memory_gb":
            info.memory_gb = _to_int(value)
        elif key in ("hostname", "os_version", "kernel", "cpu") and value:
            setattr(info, key, value)
    return info


def parse_windows_info(output: str) -> SystemInfo:
    """Parse the JSON object emitted by the PowerShell probe."""
    try:
        data = json.loads(output.strip() or "{}")
    except json.JSONDecodeError as e:
        logger.warning("Unparsable Windows system info: %s", e)
        return SystemInfo()
    if not isinstance(data, dict):
        return SystemInfo()

    nics = data.get("nics") or []
    if isinstance(nics, str):  # ConvertTo-Json unwraps single-item arrays
        nics = [nics]
    return SystemInfo(
        hostname=str(data.get("hostname") or ""),
        os_version=str(data.get("os_version") or "unknown"),
        kernel=str(data.get("kernel") or ""),
        cpu=str(data.get("cpu") or "unknown").strip(),
        memory_gb=_to_int(data.get("memory_gb")),
        nics=[str(n) for n in nics],
    )


def resolve_ip(hostname: str) -> str:
    """IPv4 address of a hostname, or empty string if it does not resolve."""
    try:
        return socket.gethostbyname(hostname)
    except OSError as e:
        logger.debug("Cannot resolve %s: %s", hostname, e)
        return ""


def _to_int(value: object) -> int:
    try:
        return int(float(str(value)))
    except (TypeError, ValueError):
        return 0
