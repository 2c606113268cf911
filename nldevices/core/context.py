"""
Inventory context — builds the collaborators for one inventory.

Entry points (CLI, tests) load Settings once and pass them here; every
use case gets its store, transport and versioning from these helpers
instead of from module-level state:

    - CLI:    main.py     → load_settings() → use case(settings)
    - Tests:  conftest    → Settings(root=tmp_path) → use case(settings, transport=fake)
"""

from __future__ import annotations

import logging

from nldevices.adapters.transport import LocalTransport, SSHTransport, Transport
from nldevices.adapters.vcs import GitVersioning, NullVersioning, Versioning
from nldevices.core.config.loader import Settings
from nldevices.core.config.recipe_loader import RecipeLoader
from nldevices.core.models.device import Device
from nldevices.core.persistence.device_store import DeviceStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> DeviceStore:
    return DeviceStore(settings.devices_path)


def build_recipes(settings: Settings) -> RecipeLoader:
    return RecipeLoader(settings.recipes_path)


def build_versioning(settings: Settings) -> Versioning:
    """Git when enabled in settings, otherwise a no-op."""
    if not settings.versioning:
        return NullVersioning()
    return GitVersioning(settings.root)


def build_transport(settings: Settings, device: Device | None = None, local: bool = False) -> Transport:
    """Transport for a device: local shell for local devices, ssh otherwise."""
    if local or (device is not None and not device.is_remote):
        return LocalTransport()
    return SSHTransport(options=list(settings.ssh.options))
