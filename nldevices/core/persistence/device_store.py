"""
Device store — the inventory's devices/ directory.

Layout per device::

    devices/<hostname>/
        device.yml      Device record (identity, OS, hardware)
        state.yml       DeviceState (what the engine confirmed applied)
        history/        one Session record per run
        .lease          session lease, never committed

The store is the only code that touches these files. It does no
locking; the session executor serializes access per device.
"""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from nldevices.core.errors import DeviceNotFound, DeviceRecordError, StateWriteError
from nldevices.core.models.device import Device, Hardware, OSType, utc_now
from nldevices.core.models.state import DeviceState
from nldevices.core.persistence.yaml_io import read_yaml, write_model

logger = logging.getLogger(__name__)

DEVICE_FILE = "device.yml"
STATE_FILE = "state.yml"
HISTORY_DIR = "history"
LEASE_FILE = ".lease"

_HOSTNAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class DeviceStore:
    """Read and write device records under a devices/ directory."""

    def __init__(self, devices_dir: Path):
        self._dir = devices_dir

    @property
    def directory(self) -> Path:
        return self._dir

    # ── Paths ───────────────────────────────────────────────────

    def device_dir(self, hostname: str) -> Path:
        if not _HOSTNAME.match(hostname):
            raise DeviceRecordError(f"Invalid hostname: {hostname!r}")
        return self._dir / hostname

    def device_path(self, hostname: str) -> Path:
        return self.device_dir(hostname) / DEVICE_FILE

    def state_path(self, hostname: str) -> Path:
        return self.device_dir(hostname) / STATE_FILE

    def history_dir(self, hostname: str) -> Path:
        return self.device_dir(hostname) / HISTORY_DIR

    def lease_path(self, hostname: str) -> Path:
        return self.device_dir(hostname) / LEASE_FILE

    # ── Queries ─────────────────────────────────────────────────

    def exists(self, hostname: str) -> bool:
        try:
            return self.device_path(hostname).is_file()
        except DeviceRecordError:
            return False

    def list_devices(self) -> list[str]:
        """Hostnames of all registered devices, sorted."""
        if not self._dir.is_dir():
            return []
        return sorted(
            child.name
            for child in self._dir.iterdir()
            if child.is_dir() and (child / DEVICE_FILE).is_file()
        )

    def load_device(self, hostname: str) -> Device:
        """Load the Device record.

        Raises:
            DeviceNotFound: No device.yml for this hostname.
            DeviceRecordError: The record exists but cannot be decoded.
        """
        path = self.device_path(hostname)
        if not path.is_file():
            raise DeviceNotFound(hostname)
        data = self._read(path)
        try:
            return Device.model_validate(data)
        except ValidationError as e:
            raise DeviceRecordError(f"Invalid device record {path}: {e}") from e

    def load(self, hostname: str) -> DeviceState:
        """Load the device's state; a registered device without state.yml starts empty.

        Raises:
            DeviceNotFound: The device is not registered.
            DeviceRecordError: state.yml exists but cannot be decoded.
        """
        if not self.exists(hostname):
            raise DeviceNotFound(hostname)
        path = self.state_path(hostname)
        if not path.is_file():
            logger.info("No state file for %s, starting fresh", hostname)
            return DeviceState()
        data = self._read(path)
        try:
            return DeviceState.model_validate(data)
        except ValidationError as e:
            raise DeviceRecordError(f"Invalid state record {path}: {e}") from e

    # ── Writes ──────────────────────────────────────────────────

    def save(self, hostname: str, state: DeviceState) -> None:
        """Persist state atomically. last_updated never moves backwards.

        Raises:
            DeviceNotFound: The device is not registered.
            StateWriteError: The file could not be written.
        """
        if not self.exists(hostname):
            raise DeviceNotFound(hostname)
        path = self.state_path(hostname)
        if path.is_file():
            try:
                previous = DeviceState.model_validate(self._read(path))
            except (DeviceRecordError, ValidationError):
                previous = None
            if previous is not None:
                state.touch(previous.last_updated)
        self._write(state, path)
        logger.debug("State saved for %s (last_updated=%s)", hostname, state.last_updated)

    def save_device(self, device: Device) -> None:
        self._write(device, self.device_path(device.hostname))

    def register(
        self,
        hostname: str,
        *,
        os: OSType,
        os_version: str = "",
        ip: str = "",
        hardware: Hardware | None = None,
        profile: str | None = None,
        tags: list[str] | None = None,
        ssh_user: str | None = None,
        ssh_port: int | None = None,
        connection: str | None = None,
    ) -> Device:
        """Create or refresh a device record.

        Re-registering keeps ``registered`` and, unless given explicitly,
        the existing profile, tags and login details. The live facts
        (OS, IP, hardware, last_seen) are always refreshed. state.yml is
        created only when missing, so recorded history is never reset.
        """
        now = utc_now()
        if self.exists(hostname):
            device = self.load_device(hostname)
            logger.info("Device %s already registered, refreshing", hostname)
        else:
            device = Device(hostname=hostname, registered=now)

        updates: dict[str, Any] = {
            "os": os,
            "os_version": os_version or device.os_version,
            "ip": ip or device.ip,
            "last_seen": now,
        }
        if hardware is not None:
            updates["hardware"] = hardware
        if profile is not None:
            updates["profile"] = profile
        if tags is not None:
            updates["tags"] = tags
        if ssh_user is not None:
            updates["ssh_user"] = ssh_user
        if ssh_port is not None:
            updates["ssh_port"] = ssh_port
        if connection is not None:
            updates["connection"] = connection
        device = device.model_copy(update=updates)

        self.save_device(device)
        if not self.state_path(hostname).is_file():
            self._write(DeviceState(last_updated=now), self.state_path(hostname))
        self.history_dir(hostname).mkdir(parents=True, exist_ok=True)
        return device

    def touch(self, hostname: str, when: datetime | None = None) -> Device:
        """Record a successful contact with the device."""
        device = self.load_device(hostname)
        device = device.model_copy(update={"last_seen": when or utc_now()})
        self.save_device(device)
        return device

    def remove(self, hostname: str) -> Path:
        """Delete the device directory with all its records."""
        if not self.exists(hostname):
            raise DeviceNotFound(hostname)
        path = self.device_dir(hostname)
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise StateWriteError(f"Cannot remove {path}: {e}") from e
        logger.info("Removed device %s", hostname)
        return path

    # ── Helpers ─────────────────────────────────────────────────

    def _read(self, path: Path) -> Any:
        try:
            data = read_yaml(path)
        except (OSError, yaml.YAMLError) as e:
            raise DeviceRecordError(f"Cannot read {path}: {e}") from e
        if not isinstance(data, dict):
            raise DeviceRecordError(f"Expected a YAML mapping in {path}")
        return data

    def _write(self, model: Device | DeviceState, path: Path) -> None:
        try:
            write_model(model, path)
        except OSError as e:
            logger.error("Failed to write %s: %s", path, e)
            raise StateWriteError(f"Cannot write {path}: {e}") from e
