"""
SSH transport — run commands on remote devices through the ssh CLI.

Uses the system OpenSSH client in batch mode so key-based auth is the
only path (no password prompts hanging a session). Exit code 255 is
ssh's own failure code, which is how channel errors are told apart
from a remote command that ran and failed.
"""

from __future__ import annotations

import logging
import shutil
import subprocess

from nldevices.adapters.transport.base import CommandResult, Credentials, Transport

logger = logging.getLogger(__name__)

DEFAULT_SSH_OPTIONS = (
    "StrictHostKeyChecking=accept-new",
    "BatchMode=yes",
)

SSH_FAILURE_CODE = 255


class SSHTransport(Transport):
    """OpenSSH client wrapper.

    Args:
        options: ``-o`` options passed on every call.
        connect_timeout: ConnectTimeout for execute() calls (seconds).
        binary: ssh executable name or path.
    """

    def __init__(
        self,
        options: tuple[str, ...] | list[str] = DEFAULT_SSH_OPTIONS,
        connect_timeout: int = 10,
        binary: str = "ssh",
    ):
        self._options = tuple(options)
        self._connect_timeout = connect_timeout
        self._binary = binary

    @property
    def name(self) -> str:
        return "ssh"

    def is_available(self) -> bool:
        return shutil.which(self._binary) is not None

    def build_command(
        self,
        hostname: str,
        credentials: Credentials,
        command: str,
        connect_timeout: int | None = None,
    ) -> list[str]:
        """Argument vector for one ssh invocation."""
        args = [self._binary]
        for option in self._options:
            args += ["-o", option]
        args += ["-o", f"ConnectTimeout={connect_timeout or self._connect_timeout}"]
        args += ["-p", str(credentials.port)]
        if credentials.identity_file:
            args += ["-i", credentials.identity_file]
        args += [f"{credentials.user}@{hostname}", command]
        return args

    def check(self, hostname: str, credentials: Credentials, timeout: float = 5) -> bool:
        connect = max(1, int(timeout))
        args = self.build_command(hostname, credentials, "echo ok", connect_timeout=connect)
        logger.debug("ssh check: %s@%s:%d", credentials.user, hostname, credentials.port)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout + 5,
            )
        except subprocess.TimeoutExpired:
            logger.info("ssh check to %s timed out", hostname)
            return False
        except OSError as e:
            logger.error("Cannot run %s: %s", self._binary, e)
            return False
        return result.returncode == 0 and result.stdout.strip() == "ok"

    def execute(
        self,
        hostname: str,
        credentials: Credentials,
        command: str,
        timeout: float | None = None,
    ) -> CommandResult:
        args = self.build_command(hostname, credentials, command)
        logger.debug("ssh %s: %s", hostname, command)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult.channel_failure(f"Command timed out after {timeout}s")
        except OSError as e:
            return CommandResult.channel_failure(f"Cannot run {self._binary}: {e}")

        return CommandResult(
            exit_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            transport_error=result.returncode == SSH_FAILURE_CODE,
        )
