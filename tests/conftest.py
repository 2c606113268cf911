"""
Shared test fixtures and configuration.

Every test gets its own inventory under tmp_path. Devices are reached
through scripted fake transports, never through ssh.
"""

from __future__ import annotations

import re
import shlex
import textwrap
from pathlib import Path

import pytest

from nldevices.adapters.handlers.sysctl import SysctlHandler
from nldevices.adapters.mock import MockHandler
from nldevices.adapters.registry import HandlerRegistry
from nldevices.adapters.transport.base import CommandResult, Credentials, Transport
from nldevices.adapters.vcs import NullVersioning
from nldevices.core.config.loader import Settings
from nldevices.core.models.device import Hardware, OSType
from nldevices.core.persistence.device_store import DeviceStore
from nldevices.core.persistence.history import HistoryWriter


class FakeTransport(Transport):
    """Scripted transport: answers commands by substring match."""

    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.rules: list[tuple[str, CommandResult]] = []
        self.commands: list[str] = []
        self.checks: list[tuple[str, Credentials]] = []

    @property
    def name(self) -> str:
        return "fake"

    def on(self, fragment: str, exit_code: int = 0, stdout: str = "", stderr: str = "",
           transport_error: bool = False) -> None:
        """Answer commands containing ``fragment``. Later rules win."""
        self.rules.insert(0, (fragment, CommandResult(
            exit_code=exit_code, stdout=stdout, stderr=stderr, transport_error=transport_error,
        )))

    def check(self, hostname, credentials, timeout=5):
        self.checks.append((hostname, credentials))
        return self.reachable

    def execute(self, hostname, credentials, command, timeout=None):
        self.commands.append(command)
        if not self.reachable:
            return CommandResult.channel_failure(f"ssh: connect to host {hostname}: No route to host")
        for fragment, result in self.rules:
            if fragment in command:
                return result
        return CommandResult(exit_code=0)


class FakeKernel(FakeTransport):
    """A Linux device whose sysctl values live in a dict.

    Understands the commands SysctlHandler sends: ``sysctl -n key`` and
    ``sysctl -w key=value && <persist>``. Keys listed in ``readonly``
    refuse writes.
    """

    def __init__(self, values: dict[str, str] | None = None, readonly: tuple[str, ...] = ()):
        super().__init__()
        self.values = dict(values or {})
        self.readonly = set(readonly)
        self.writes: list[str] = []

    def execute(self, hostname, credentials, command, timeout=None):
        self.commands.append(command)
        if not self.reachable:
            return CommandResult.channel_failure("ssh: connect to host: Connection timed out")

        read = re.fullmatch(r"sysctl -n (\S+)", command)
        if read:
            key = shlex.split(read.group(1))[0]
            if key not in self.values:
                return CommandResult(exit_code=1, stderr=f"sysctl: cannot stat {key}")
            return CommandResult(exit_code=0, stdout=f"{self.values[key]}\n")

        first = command.split(" && ")[0]
        argv = shlex.split(first)
        if "sysctl" in argv and "-w" in argv:
            key, _, value = argv[argv.index("-w") + 1].partition("=")
            if key in self.readonly:
                return CommandResult(exit_code=1, stderr=f"sysctl: permission denied on key '{key}'")
            self.values[key] = value
            self.writes.append(key)
            return CommandResult(exit_code=0, stdout=f"{key} = {value}\n")

        return super().execute(hostname, credentials, command, timeout)


# ── Inventory ─────────────────────────────────────────────────────


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings for an empty inventory rooted at tmp_path, git disabled."""
    return Settings(root=tmp_path, versioning=False)


@pytest.fixture
def store(settings: Settings) -> DeviceStore:
    return DeviceStore(settings.devices_path)


@pytest.fixture
def history(store: DeviceStore, settings: Settings) -> HistoryWriter:
    return HistoryWriter(store, NullVersioning(), settings)


@pytest.fixture
def iem(store: DeviceStore):
    """The iem.lan Linux device, registered."""
    return store.register(
        "iem.lan",
        os=OSType.LINUX,
        os_version="Ubuntu 24.04 LTS",
        ip="10.0.0.20",
        hardware=Hardware(cpu="AMD Ryzen 9 7950X", memory_gb=64, nics=["enp5s0"]),
        profile="dante-node",
        tags=["production", "dante"],
    )


@pytest.fixture
def write_recipe(settings: Settings):
    """Write recipes/<name>.yml from a YAML snippet."""

    def _write(name: str, body: str) -> Path:
        path = settings.recipes_path / f"{name}.yml"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
        return path

    return _write


NETWORK_OPTIMIZE = """
    name: network-optimize
    description: Low-latency network stack tuning
    category: network
    actions:
      - name: set-buffer-size
        linux:
          module: sysctl
          params: {key: net.core.rmem_max, value: 16777216}
      - name: enable-bbr
        linux:
          module: sysctl
          params: {key: net.ipv4.tcp_congestion_control, value: bbr}
"""


@pytest.fixture
def network_optimize(write_recipe) -> Path:
    return write_recipe("network-optimize", NETWORK_OPTIMIZE)


# ── Handlers ──────────────────────────────────────────────────────


@pytest.fixture
def mock_handler() -> MockHandler:
    return MockHandler()


@pytest.fixture
def mock_registry(mock_handler: MockHandler) -> HandlerRegistry:
    registry = HandlerRegistry()
    registry.register(mock_handler)
    return registry


@pytest.fixture
def sysctl_registry() -> HandlerRegistry:
    registry = HandlerRegistry()
    registry.register(SysctlHandler())
    return registry


@pytest.fixture
def kernel() -> FakeKernel:
    return FakeKernel({
        "net.core.rmem_max": "212992",
        "net.ipv4.tcp_congestion_control": "cubic",
    })


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
