"""
Device model — one managed machine in the inventory.

Serialized to devices/<hostname>/device.yml. The hostname is the
unique key and also the directory name.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current UTC time, truncated to whole seconds."""
    return datetime.now(UTC).replace(microsecond=0)


class OSType(StrEnum):
    """Operating system families a recipe can target."""

    LINUX = "linux"
    WINDOWS = "windows"
    MACOS = "macos"
    UNKNOWN = "unknown"


class Hardware(BaseModel):
    """Hardware snapshot gathered at registration."""

    cpu: str = "unknown"
    memory_gb: int = 0
    nics: list[str] = Field(default_factory=list)


class Device(BaseModel):
    """A registered device.

    Owned by the DeviceStore. The engine only ever sees a snapshot.
    """

    hostname: str
    ip: str = ""
    os: OSType = OSType.UNKNOWN
    os_version: str = ""
    profile: str = ""
    tags: list[str] = Field(default_factory=list)
    ssh_user: str = "newlevel"
    ssh_port: int = 22
    connection: Literal["ssh", "local"] = "ssh"  # local = operator machine itself
    registered: datetime = Field(default_factory=utc_now)
    last_seen: datetime = Field(default_factory=utc_now)
    hardware: Hardware = Field(default_factory=Hardware)

    @property
    def is_remote(self) -> bool:
        return self.connection == "ssh"
