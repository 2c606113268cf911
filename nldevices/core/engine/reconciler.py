"""
Reconciler — diff a recipe against a device.

For every action, in recipe order, decide one disposition:

    unsupported-on-platform   no specification for the device's OS
    needs-apply               no handler, or verify is not SATISFIED
    already-satisfied         verify answered SATISFIED

The reconciler never applies anything and never reorders actions. A
probe that cannot answer (INDETERMINATE, or a crash inside verify)
means needs-apply: only a positive answer skips work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from nldevices.adapters.base import Handler, HandlerContext, Verdict
from nldevices.adapters.registry import HandlerRegistry
from nldevices.adapters.transport.base import Transport
from nldevices.core.config.loader import Settings
from nldevices.core.models.device import Device, OSType
from nldevices.core.models.recipe import PlatformSpec, Recipe, RecipeAction
from nldevices.core.models.session import Disposition

logger = logging.getLogger(__name__)


@dataclass
class PlannedAction:
    """One reconciled recipe action."""

    action: RecipeAction
    disposition: Disposition
    spec: PlatformSpec | None = None
    handler: Handler | None = None
    context: HandlerContext | None = None
    verdict: Verdict | None = None
    reason: str = ""

    @property
    def name(self) -> str:
        return self.action.name

    @property
    def module(self) -> str:
        return self.spec.module if self.spec else ""

    def to_dict(self) -> dict:
        return {
            "action": self.name,
            "module": self.module,
            "disposition": str(self.disposition),
            "verdict": str(self.verdict) if self.verdict else None,
            "reason": self.reason,
        }


@dataclass
class ExecutionPlan:
    """Ordered reconciliation result for one recipe on one device."""

    hostname: str
    recipe: str
    platform: OSType
    entries: list[PlannedAction] = field(default_factory=list)

    def count(self, disposition: Disposition) -> int:
        return sum(1 for e in self.entries if e.disposition == disposition)

    @property
    def to_apply(self) -> list[PlannedAction]:
        return [e for e in self.entries if e.disposition == Disposition.NEEDS_APPLY]

    @property
    def is_noop(self) -> bool:
        return not self.to_apply

    def to_dict(self) -> dict:
        return {
            "hostname": self.hostname,
            "recipe": self.recipe,
            "platform": str(self.platform),
            "needs_apply": self.count(Disposition.NEEDS_APPLY),
            "already_satisfied": self.count(Disposition.ALREADY_SATISFIED),
            "unsupported": self.count(Disposition.UNSUPPORTED),
            "actions": [e.to_dict() for e in self.entries],
        }


class Reconciler:
    """Compute an ExecutionPlan through the handlers' verify probes."""

    def __init__(self, registry: HandlerRegistry, transport: Transport, settings: Settings):
        self._registry = registry
        self._transport = transport
        self._settings = settings

    def plan(self, device: Device, recipe: Recipe) -> ExecutionPlan:
        plan = ExecutionPlan(hostname=device.hostname, recipe=recipe.name, platform=device.os)
        for action in recipe.actions:
            plan.entries.append(self._classify(device, recipe, action))

        logger.info(
            "Plan for %s on %s: %d to apply, %d satisfied, %d unsupported",
            recipe.name, device.hostname,
            plan.count(Disposition.NEEDS_APPLY),
            plan.count(Disposition.ALREADY_SATISFIED),
            plan.count(Disposition.UNSUPPORTED),
        )
        return plan

    def context_for(
        self, device: Device, recipe: Recipe, action: RecipeAction, spec: PlatformSpec
    ) -> HandlerContext:
        return HandlerContext(
            action=action.name,
            device=device,
            transport=self._transport,
            params=dict(spec.params),
            verify=spec.verify,
            category=spec.category or recipe.category,
            command_timeout=self._settings.ssh.command_timeout,
            identity_file=self._settings.ssh.identity_file,
        )

    def _classify(self, device: Device, recipe: Recipe, action: RecipeAction) -> PlannedAction:
        spec = action.spec_for(device.os)
        if spec is None:
            return PlannedAction(
                action=action,
                disposition=Disposition.UNSUPPORTED,
                reason=f"no specification for {device.os}",
            )

        handler = self._registry.resolve(spec.module, device.os)
        if handler is None:
            logger.warning("No handler for module '%s' on %s", spec.module, device.os)
            return PlannedAction(
                action=action,
                disposition=Disposition.NEEDS_APPLY,
                spec=spec,
                reason=f"no handler for module '{spec.module}' on {device.os}",
            )

        ctx = self.context_for(device, recipe, action, spec)
        verdict = self._verify(handler, ctx)
        if verdict is Verdict.SATISFIED:
            disposition, reason = Disposition.ALREADY_SATISFIED, "already satisfied"
        elif verdict is Verdict.UNSATISFIED:
            disposition, reason = Disposition.NEEDS_APPLY, "not satisfied"
        else:
            disposition, reason = Disposition.NEEDS_APPLY, "state unknown"

        logger.debug("  %s: %s (%s)", action.name, disposition, verdict)
        return PlannedAction(
            action=action,
            disposition=disposition,
            spec=spec,
            handler=handler,
            context=ctx,
            verdict=verdict,
            reason=reason,
        )

    def _verify(self, handler: Handler, ctx: HandlerContext) -> Verdict:
        try:
            return Verdict(handler.verify(ctx))
        except Exception as e:
            logger.warning("verify for %s raised %s: %s", ctx.action, type(e).__name__, e)
            return Verdict.INDETERMINATE
