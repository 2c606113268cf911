"""
Tests for device discovery — OS detection and system info parsing.
"""

from __future__ import annotations

import json

from conftest import FakeTransport

import pytest

from nldevices.adapters.transport.base import Credentials
from nldevices.core.models.device import OSType
from nldevices.core.services.sysinfo import (
    classify_uname,
    detect_os,
    gather_system_info,
    parse_key_values,
    parse_windows_info,
    resolve_ip,
)

LINUX_OUTPUT = """\
hostname=iem
os_version="Ubuntu 24.04 LTS"
kernel=6.8.0-45-lowlatency
cpu=AMD Ryzen 9 7950X 16-Core Processor
memory_gb=62
nic=enp5s0
nic=wlp6s0
"""


class TestClassify:
    @pytest.mark.parametrize("output,expected", [
        ("Linux\n", OSType.LINUX),
        ("Darwin", OSType.MACOS),
        ("MINGW64_NT-10.0-19045", OSType.WINDOWS),
        ("WINDOWS\r\n", OSType.WINDOWS),
        ("FreeBSD", OSType.UNKNOWN),
        ("", OSType.UNKNOWN),
    ])
    def test_classify_uname(self, output, expected):
        assert classify_uname(output) == expected

    def test_detect_os(self):
        transport = FakeTransport()
        transport.on("uname -s", stdout="Linux\n")
        assert detect_os(transport, "iem.lan", Credentials()) == OSType.LINUX

    def test_detect_os_windows_fallback(self):
        transport = FakeTransport()
        transport.on("uname -s", exit_code=0, stdout="WINDOWS\r\n")
        assert detect_os(transport, "studio", Credentials()) == OSType.WINDOWS

    def test_detect_os_channel_failure(self):
        assert detect_os(FakeTransport(reachable=False), "iem.lan", Credentials()) == OSType.UNKNOWN


class TestParsers:
    def test_key_values(self):
        info = parse_key_values(LINUX_OUTPUT)
        assert info.hostname == "iem"
        assert info.os_version == "Ubuntu 24.04 LTS"
        assert info.cpu == "AMD Ryzen 9 7950X 16-Core Processor"
        assert info.memory_gb == 62
        assert info.nics == ["enp5s0", "wlp6s0"]

    def test_key_values_tolerates_noise(self):
        info = parse_key_values("motd banner\nmemory_gb=\ncpu=\n")
        assert info.memory_gb == 0
        assert info.cpu == "unknown"

    def test_windows_json(self):
        payload = {
            "hostname": "STUDIO-PC",
            "os_version": "Microsoft Windows 11 Pro 10.0.22631",
            "kernel": "10.0.22631",
            "cpu": "Intel(R) Core(TM) i9-13900K ",
            "memory_gb": 31.7,
            "nics": ["Ethernet", "Dante Primary"],
        }
        info = parse_windows_info(json.dumps(payload))
        assert info.hostname == "STUDIO-PC"
        assert info.cpu == "Intel(R) Core(TM) i9-13900K"
        assert info.memory_gb == 31
        assert info.nics == ["Ethernet", "Dante Primary"]

    def test_windows_single_nic_unwrapped(self):
        info = parse_windows_info(json.dumps({"nics": "Ethernet"}))
        assert info.nics == ["Ethernet"]

    def test_windows_garbage(self):
        assert parse_windows_info("not json").cpu == "unknown"
        assert parse_windows_info("[1, 2]").nics == []


class TestGather:
    def test_linux(self):
        transport = FakeTransport()
        transport.on("os-release", stdout=LINUX_OUTPUT)
        info = gather_system_info(transport, "iem.lan", Credentials(), OSType.LINUX)
        assert info.os == OSType.LINUX
        assert info.hardware.memory_gb == 62
        assert info.hardware.nics == ["enp5s0", "wlp6s0"]

    def test_windows_uses_powershell(self):
        transport = FakeTransport()
        transport.on("powershell", stdout=json.dumps({"hostname": "STUDIO-PC", "memory_gb": 64}))
        info = gather_system_info(transport, "studio", Credentials(), OSType.WINDOWS)
        assert info.hostname == "STUDIO-PC"
        assert info.memory_gb == 64
        assert transport.commands[0].startswith("powershell ")

    def test_probe_failure_yields_defaults(self):
        transport = FakeTransport()
        transport.on("os-release", exit_code=1, stderr="boom")
        info = gather_system_info(transport, "iem.lan", Credentials(), OSType.LINUX)
        assert info.hostname == "iem.lan"
        assert info.cpu == "unknown"

    def test_to_dict(self):
        info = parse_key_values(LINUX_OUTPUT)
        assert info.to_dict()["nics"] == ["enp5s0", "wlp6s0"]


class TestResolveIp:
    def test_unresolvable(self, monkeypatch):
        import socket

        def fail(name):
            raise socket.gaierror("Name or service not known")

        monkeypatch.setattr(socket, "gethostbyname", fail)
        assert resolve_ip("nowhere.invalid") == ""

    def test_resolves(self, monkeypatch):
        import socket

        monkeypatch.setattr(socket, "gethostbyname", lambda name: "10.0.0.20")
        assert resolve_ip("iem.lan") == "10.0.0.20"
