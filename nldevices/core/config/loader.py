"""
Configuration loader — reads nldevices.yml into a Settings model.

nldevices.yml sits at the root of the inventory repository (next to
devices/ and recipes/). It is optional: without it every setting takes
its default and the current directory is the inventory root.

Settings are passed explicitly into the reconciler, executor and
history writer. Nothing reads configuration from module globals.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "nldevices.yml"


class ConfigError(Exception):
    """Raised when toolkit configuration is invalid or missing."""


class SSHSettings(BaseModel):
    """Defaults for reaching devices over SSH."""

    default_user: str = "newlevel"
    default_port: int = 22
    identity_file: str | None = None
    options: list[str] = Field(
        default_factory=lambda: ["StrictHostKeyChecking=accept-new", "BatchMode=yes"]
    )
    command_timeout: float | None = None   # None = block until the command ends


class Settings(BaseModel):
    """Toolkit settings for one inventory."""

    root: Path = Field(default_factory=Path.cwd)

    executed_by: str = "nldevices"
    version: str = "dev"
    dry_run: bool = False

    connect_timeout: float = 5
    post_verify: bool = True
    versioning: bool = True

    default_profile: str = "base-workstation"
    default_tags: list[str] = Field(default_factory=lambda: ["production"])

    devices_dir: str = "devices"
    recipes_dir: str = "recipes"
    profiles_dir: str = "profiles"

    ssh: SSHSettings = Field(default_factory=SSHSettings)

    @property
    def devices_path(self) -> Path:
        return self.root / self.devices_dir

    @property
    def recipes_path(self) -> Path:
        return self.root / self.recipes_dir

    @property
    def profiles_path(self) -> Path:
        return self.root / self.profiles_dir


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for nldevices.yml starting from the given directory, walking up.

    This allows running commands from inside devices/<host>/ and still
    finding the inventory root.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to nldevices.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None, root: Path | None = None) -> Settings:
    """Load and validate toolkit settings.

    Args:
        path: Explicit path to nldevices.yml. If None, searches upward.
        root: Inventory root to use when no config file exists.

    Returns:
        Validated Settings, with environment overrides applied.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    explicit = path is not None
    if path is None:
        path = find_config_file(root)

    data: dict = {}
    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILE)
        config_root = (root or Path.cwd()).resolve()
    else:
        if not path.is_file():
            if explicit:
                raise ConfigError(f"Config file not found: {path}")
        else:
            data = _read_yaml(path)
        config_root = path.parent.resolve()

    data.setdefault("root", config_root)
    _apply_env_overrides(data)

    try:
        settings = Settings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration in {path or CONFIG_FILE}: {e}") from e

    logger.debug("Inventory root: %s (dry_run=%s)", settings.root, settings.dry_run)
    return settings


def _read_yaml(path: Path) -> dict:
    logger.debug("Loading settings from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _apply_env_overrides(data: dict) -> None:
    """DRY_RUN and NLDEVICESSETUP_VERSION win over the file."""
    dry_run = os.environ.get("DRY_RUN")
    if dry_run is not None:
        data["dry_run"] = dry_run.strip().lower() in {"1", "true", "yes"}
    version = os.environ.get("NLDEVICESSETUP_VERSION")
    if version:
        data["version"] = version
