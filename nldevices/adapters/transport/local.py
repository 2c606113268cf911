"""
Local transport — run commands on the operator machine itself.

Used for devices registered with ``connection: local``. The hostname
and credentials are accepted for protocol symmetry and ignored.
"""

from __future__ import annotations

import logging
import subprocess

from nldevices.adapters.transport.base import CommandResult, Credentials, Transport

logger = logging.getLogger(__name__)


class LocalTransport(Transport):
    """Run commands through the local shell."""

    def __init__(self, shell: str = "sh"):
        self._shell = shell

    @property
    def name(self) -> str:
        return "local"

    def check(self, hostname: str, credentials: Credentials, timeout: float = 5) -> bool:
        return True

    def execute(
        self,
        hostname: str,
        credentials: Credentials,
        command: str,
        timeout: float | None = None,
    ) -> CommandResult:
        logger.debug("local: %s", command)
        try:
            result = subprocess.run(
                [self._shell, "-c", command],
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult.channel_failure(f"Command timed out after {timeout}s")
        except OSError as e:
            return CommandResult.channel_failure(f"Cannot run {self._shell}: {e}")

        return CommandResult(
            exit_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
