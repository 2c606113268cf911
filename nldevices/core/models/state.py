"""
DeviceState — the reconciled configuration snapshot of one device.

Serialized to devices/<hostname>/state.yml. It records what the engine
has confirmed applied: installed software, optimization values by
category, and the recipes that were applied (with the session that did
it). Only the history writer mutates it, and only at session
finalization.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from nldevices.core.models.device import utc_now

DEFAULT_CATEGORIES = ("network", "power", "audio")


def _default_optimizations() -> dict[str, dict[str, Any]]:
    return {name: {} for name in DEFAULT_CATEGORIES}


class AppliedRecipe(BaseModel):
    """One entry of the applied-recipe history."""

    name: str
    applied_at: datetime
    session_id: str


class DeviceState(BaseModel):
    """Root state model for a device."""

    last_updated: datetime = Field(default_factory=utc_now)

    software: dict[str, dict[str, Any]] = Field(default_factory=dict)
    optimizations: dict[str, dict[str, Any]] = Field(default_factory=_default_optimizations)

    applied_recipes: list[AppliedRecipe] = Field(default_factory=list)

    def has_applied(self, recipe: str) -> bool:
        """Whether the recipe was ever recorded as applied."""
        return any(entry.name == recipe for entry in self.applied_recipes)

    def merge_optimizations(self, delta: dict[str, dict[str, Any]]) -> bool:
        """Merge a category → key → value delta. Returns True if anything changed."""
        changed = False
        for category, values in delta.items():
            bucket = self.optimizations.setdefault(category, {})
            for key, value in values.items():
                if key not in bucket or bucket[key] != value:
                    bucket[key] = value
                    changed = True
        return changed

    def merge_software(self, delta: dict[str, dict[str, Any]]) -> bool:
        """Merge a package → metadata delta. Returns True if anything changed."""
        changed = False
        for package, info in delta.items():
            if self.software.get(package) != info:
                self.software[package] = dict(info)
                changed = True
        return changed

    def touch(self, when: datetime | None = None) -> None:
        """Advance last_updated; never moves it backwards."""
        when = when or utc_now()
        if when > self.last_updated:
            self.last_updated = when
