"""
Shared helpers for CLI command groups.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click

from nldevices.core.config.loader import ConfigError, Settings, load_settings


def resolve_settings(ctx: click.Context) -> Settings:
    """Load settings once per invocation; config errors end the command."""
    obj = ctx.ensure_object(dict)
    if obj.get("settings") is None:
        config_path: Path | None = obj.get("config_path")
        try:
            obj["settings"] = load_settings(config_path)
        except ConfigError as e:
            click.secho(f"❌ {e}", fg="red")
            sys.exit(1)
    return obj["settings"]


def fail(message: str) -> NoReturn:
    click.secho(f"❌ {message}", fg="red")
    sys.exit(1)
