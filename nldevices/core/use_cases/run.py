"""
Run use case — apply a recipe to one device.

The full vertical slice from user intent to audited execution: load the
device and the recipe, wire the executor, run the session, and hand
back the outcome for display.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from nldevices.adapters.registry import HandlerRegistry, default_registry
from nldevices.adapters.transport.base import Transport
from nldevices.adapters.vcs import Versioning
from nldevices.core.config.loader import Settings
from nldevices.core.context import build_recipes, build_store, build_transport, build_versioning
from nldevices.core.engine.executor import SessionExecutor, SessionOutcome
from nldevices.core.errors import NLDevicesError
from nldevices.core.models.device import Device
from nldevices.core.models.recipe import Recipe
from nldevices.core.persistence.history import HistoryWriter

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Result of running a recipe on a device."""

    hostname: str = ""
    recipe_name: str = ""
    device: Device | None = None
    recipe: Recipe | None = None
    outcome: SessionOutcome | None = None
    error: str | None = None

    @property
    def dry_run(self) -> bool:
        return self.outcome is not None and self.outcome.dry_run

    @property
    def failed_actions(self) -> list[str]:
        if self.outcome is None or self.outcome.session is None:
            return []
        return self.outcome.session.failed_actions

    @property
    def ok(self) -> bool:
        return self.error is None and self.outcome is not None and self.outcome.ok

    def to_dict(self) -> dict:
        result: dict = {"hostname": self.hostname, "recipe": self.recipe_name}
        if self.error:
            result["error"] = self.error
        if self.outcome:
            result.update(self.outcome.to_dict())
        return result


def run_recipe(
    hostname: str,
    recipe_name: str,
    settings: Settings,
    dry_run: bool | None = None,
    transport: Transport | None = None,
    registry: HandlerRegistry | None = None,
    versioning: Versioning | None = None,
) -> RunResult:
    """Apply a recipe to a registered device.

    Args:
        hostname: Registered device.
        recipe_name: Recipe under recipes/.
        settings: Inventory settings.
        dry_run: Plan only. Defaults to ``settings.dry_run``.
        transport: Override the transport (tests).
        registry: Override the handler registry (tests).
        versioning: Override versioning (tests).

    Returns:
        RunResult. Fatal errors land in ``error``; per-action failures
        are in the session.
    """
    result = RunResult(hostname=hostname, recipe_name=recipe_name)
    store = build_store(settings)

    try:
        device = store.load_device(hostname)
        result.device = device
        recipe = build_recipes(settings).load(recipe_name)
        result.recipe = recipe
    except NLDevicesError as e:
        result.error = str(e)
        return result

    if not recipe.supports(device.os):
        logger.warning(
            "Recipe %s declares no %s actions; every action will be skipped",
            recipe.name, device.os,
        )

    executor = SessionExecutor(
        registry=registry or default_registry(),
        transport=transport or build_transport(settings, device),
        store=store,
        history=HistoryWriter(store, versioning or build_versioning(settings), settings),
        settings=settings,
    )

    try:
        result.outcome = executor.run(device, recipe, dry_run=dry_run)
    except NLDevicesError as e:
        logger.error("Session for %s on %s aborted: %s", recipe_name, hostname, e)
        result.error = str(e)
        return result

    session = result.outcome.session
    if session is not None and session.error:
        result.error = session.error
    return result
