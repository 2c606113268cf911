"""
Inventory use cases — read-only views of devices, recipes and profiles,
plus explicit device removal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from nldevices.adapters.vcs import CommitOutcome, Versioning
from nldevices.core.config.loader import Settings
from nldevices.core.config.profile_loader import discover_profiles
from nldevices.core.context import build_recipes, build_store, build_versioning
from nldevices.core.errors import NLDevicesError
from nldevices.core.models.device import Device
from nldevices.core.models.profile import Profile
from nldevices.core.models.recipe import Recipe, RecipeSummary
from nldevices.core.models.state import DeviceState

logger = logging.getLogger(__name__)


# ── Devices ─────────────────────────────────────────────────────


@dataclass
class DeviceListResult:
    devices: list[Device] = field(default_factory=list)
    broken: dict[str, str] = field(default_factory=dict)   # hostname → error
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "devices": [d.model_dump(mode="json") for d in self.devices],
            "broken": dict(self.broken),
        }


def list_devices(settings: Settings) -> DeviceListResult:
    """All registered devices; unreadable records are reported, not fatal."""
    result = DeviceListResult()
    store = build_store(settings)
    for hostname in store.list_devices():
        try:
            result.devices.append(store.load_device(hostname))
        except NLDevicesError as e:
            result.broken[hostname] = str(e)
    return result


@dataclass
class DeviceResult:
    """One device with its state."""

    hostname: str = ""
    device: Device | None = None
    state: DeviceState | None = None
    commit: CommitOutcome | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"hostname": self.hostname, "error": self.error}
        result: dict = {"hostname": self.hostname}
        if self.device:
            result["device"] = self.device.model_dump(mode="json")
        if self.state:
            result["state"] = self.state.model_dump(mode="json")
        if self.commit:
            result["commit"] = self.commit.model_dump(mode="json")
        return result


def show_device(hostname: str, settings: Settings) -> DeviceResult:
    result = DeviceResult(hostname=hostname)
    store = build_store(settings)
    try:
        result.device = store.load_device(hostname)
        result.state = store.load(hostname)
    except NLDevicesError as e:
        result.error = str(e)
    return result


def remove_device(
    hostname: str,
    settings: Settings,
    versioning: Versioning | None = None,
) -> DeviceResult:
    """Delete a device and its history from the inventory, then commit."""
    result = DeviceResult(hostname=hostname)
    store = build_store(settings)
    try:
        path = store.remove(hostname)
    except NLDevicesError as e:
        result.error = str(e)
        return result

    versioning = versioning or build_versioning(settings)
    outcome = versioning.commit(f"Remove: {hostname}", [path])
    if outcome.failed:
        logger.warning("Versioning failed for removal of %s: %s", hostname, outcome.error)
    result.commit = outcome
    return result


# ── Recipes ─────────────────────────────────────────────────────


def list_recipes(settings: Settings) -> list[RecipeSummary]:
    return build_recipes(settings).list()


@dataclass
class RecipeResult:
    name: str = ""
    text: str = ""
    recipe: Recipe | None = None
    error: str | None = None


def show_recipe(name: str, settings: Settings, parsed: bool = False) -> RecipeResult:
    """Raw recipe text, and the validated model when ``parsed``."""
    result = RecipeResult(name=name)
    loader = build_recipes(settings)
    try:
        result.text = loader.read_text(name)
        if parsed:
            result.recipe = loader.load(name)
    except (NLDevicesError, OSError) as e:
        result.error = str(e)
    return result


# ── Profiles ────────────────────────────────────────────────────


def list_profiles(settings: Settings) -> list[Profile]:
    return sorted(discover_profiles(settings.profiles_path).values(), key=lambda p: p.name)
