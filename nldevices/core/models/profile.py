"""
Profile model — a named template for new devices.

Profiles live in profiles/<name>.yml and may name a parent profile.
They only seed a device's ``profile`` and ``tags`` at registration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Profile(BaseModel):
    """A device template (e.g. base-workstation, dante-node)."""

    name: str
    description: str = ""
    parent: str = ""
    tags: list[str] = Field(default_factory=list)
    recipes: list[str] = Field(default_factory=list)
