"""
Transport protocol — how the engine reaches a device.

The engine never opens a channel itself: a Transport is injected into
the reconciler and executor. Two operations only:

    check(hostname, credentials, timeout)  → reachable?
    execute(hostname, credentials, command) → CommandResult

Like adapters, transports do not raise for remote failures. A command
that ran and failed has a non-zero exit code; a channel that could not
carry the command at all sets ``transport_error``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel


class Credentials(BaseModel):
    """Login details for a device."""

    user: str = "newlevel"
    port: int = 22
    identity_file: str | None = None


class CommandResult(BaseModel):
    """Outcome of one command on a device."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    transport_error: bool = False   # the channel failed, not the command

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.transport_error

    @property
    def message(self) -> str:
        """Best human-readable description of a failure."""
        return self.stderr.strip() or self.stdout.strip() or f"exit code {self.exit_code}"

    @classmethod
    def channel_failure(cls, error: str) -> CommandResult:
        return cls(exit_code=255, stderr=error, transport_error=True)


class Transport(ABC):
    """Abstract command channel."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport identifier (e.g. 'ssh', 'local')."""

    @abstractmethod
    def check(self, hostname: str, credentials: Credentials, timeout: float = 5) -> bool:
        """Liveness probe. Must return within roughly ``timeout`` seconds."""

    @abstractmethod
    def execute(
        self,
        hostname: str,
        credentials: Credentials,
        command: str,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command on the device. ``timeout=None`` blocks until done."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
