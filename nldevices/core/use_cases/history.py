"""
History use case — recent sessions of a device, or its git log.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from nldevices.adapters.vcs import Versioning
from nldevices.core.config.loader import Settings
from nldevices.core.context import build_store, build_versioning
from nldevices.core.errors import DeviceNotFound, NLDevicesError
from nldevices.core.models.session import Session
from nldevices.core.persistence.history import HistoryWriter


@dataclass
class HistoryResult:
    """Sessions (newest first) or commit lines for a device."""

    hostname: str = ""
    sessions: list[Session] = field(default_factory=list)
    commits: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"hostname": self.hostname, "error": self.error}
        return {
            "hostname": self.hostname,
            "sessions": [s.model_dump(mode="json") for s in self.sessions],
            "commits": list(self.commits),
        }


def get_history(
    hostname: str,
    settings: Settings,
    limit: int = 10,
    commits: bool = False,
    versioning: Versioning | None = None,
) -> HistoryResult:
    """Recent sessions of a device; with ``commits``, its version log instead."""
    result = HistoryResult(hostname=hostname)
    store = build_store(settings)
    versioning = versioning or build_versioning(settings)

    try:
        if not store.exists(hostname):
            raise DeviceNotFound(hostname)
        if commits:
            result.commits = versioning.log([store.device_dir(hostname)], limit=limit)
        else:
            writer = HistoryWriter(store, versioning, settings)
            result.sessions = writer.list_sessions(hostname, limit=limit)
    except NLDevicesError as e:
        result.error = str(e)

    return result
