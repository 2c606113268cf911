"""
Device lease — at most one session per device at a time.

An advisory ``flock`` on devices/<hostname>/.lease. The lock belongs to
the open file, so it is released when the process dies; a stale lease
file on disk never blocks anyone.
"""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path

from nldevices.core.errors import DeviceBusy

logger = logging.getLogger(__name__)


class DeviceLease:
    """Non-blocking exclusive lease, usable as a context manager."""

    def __init__(self, path: Path, hostname: str, holder: str = ""):
        self._path = path
        self._hostname = hostname
        self._holder = holder or f"pid {os.getpid()}"
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lease or fail immediately.

        Raises:
            DeviceBusy: Another session holds it.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            holder = os.read(fd, 256).decode("utf-8", "replace").strip()
            os.close(fd)
            raise DeviceBusy(self._hostname, holder) from None

        os.ftruncate(fd, 0)
        os.write(fd, self._holder.encode("utf-8"))
        self._fd = fd
        logger.debug("Lease on %s acquired by %s", self._hostname, self._holder)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            os.ftruncate(self._fd, 0)
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("Lease on %s released", self._hostname)

    def __enter__(self) -> DeviceLease:
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
