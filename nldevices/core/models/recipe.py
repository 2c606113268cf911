"""
Recipe model — a named declaration of desired actions.

Recipes are authored as YAML under recipes/<name>.yml:

    name: network-optimize
    description: TCP/UDP buffers and congestion control
    platforms: [linux, windows]
    category: network
    actions:
      - name: enable-bbr
        linux:
          module: sysctl
          params: {key: net.ipv4.tcp_congestion_control, value: bbr}
        windows:
          module: command
          params: {command: "netsh int tcp set supplemental internet congestionprovider=ctcp"}
          verify: {command: "...", expect: "CTCP"}

Each action carries one specification per platform. An action without
a specification for a device's OS stays in the model: the reconciler
reports it as unsupported rather than letting it disappear.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from nldevices.core.models.device import OSType

PLATFORM_KEYS = frozenset(os.value for os in OSType if os is not OSType.UNKNOWN)


class VerifySpec(BaseModel):
    """How to test whether an action's desired state already holds.

    A bare command string means "exit code 0 = satisfied". With
    ``expect`` set, the command's stdout must equal the expected value
    (whitespace-normalized).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    command: str
    expect: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"command": data}
        if isinstance(data, dict) and "expect" in data and data["expect"] is not None:
            return {**data, "expect": str(data["expect"])}
        return data


class PlatformSpec(BaseModel):
    """One platform's realization of an action."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    module: str
    params: dict[str, Any] = Field(default_factory=dict)
    verify: VerifySpec | None = None
    category: str | None = None   # state bucket for recorded changes


class RecipeAction(BaseModel):
    """One declarative unit of change within a recipe."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    description: str = ""
    specs: dict[OSType, PlatformSpec] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_platforms(cls, data: Any) -> Any:
        """Fold the per-platform top-level keys into ``specs``."""
        if not isinstance(data, dict) or "specs" in data:
            return data
        specs = {key: data[key] for key in data if key in PLATFORM_KEYS}
        rest = {key: value for key, value in data.items() if key not in PLATFORM_KEYS}
        return {**rest, "specs": specs}

    def spec_for(self, os: OSType) -> PlatformSpec | None:
        """The specification for a platform, or None if unsupported there."""
        return self.specs.get(os)

    @property
    def platforms(self) -> list[OSType]:
        return list(self.specs.keys())


class Recipe(BaseModel):
    """A loaded recipe. Immutable for the lifetime of a session."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    description: str = ""
    version: str = ""
    platforms: list[OSType] = Field(default_factory=list)
    category: str | None = None   # default bucket for every action
    actions: list[RecipeAction] = Field(default_factory=list)

    @model_validator(mode="after")
    def _derive_platforms(self) -> Recipe:
        if not self.platforms:
            seen: dict[OSType, None] = {}
            for action in self.actions:
                for os in action.specs:
                    seen[os] = None
            object.__setattr__(self, "platforms", list(seen))
        return self

    def supports(self, os: OSType) -> bool:
        return os in self.platforms

    def get_action(self, name: str) -> RecipeAction | None:
        for action in self.actions:
            if action.name == name:
                return action
        return None

    @property
    def action_names(self) -> list[str]:
        return [a.name for a in self.actions]


class RecipeSummary(BaseModel):
    """Listing entry for the recipes directory."""

    name: str
    description: str = ""
    platforms: list[str] = Field(default_factory=list)
    actions: int = 0
    error: str | None = None
