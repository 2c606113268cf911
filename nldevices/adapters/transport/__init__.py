"""Transports — command channels to target devices."""

from nldevices.adapters.transport.base import CommandResult, Credentials, Transport
from nldevices.adapters.transport.local import LocalTransport
from nldevices.adapters.transport.ssh import SSHTransport

__all__ = [
    "CommandResult",
    "Credentials",
    "LocalTransport",
    "SSHTransport",
    "Transport",
]
