"""
Session executor — the central orchestration loop.

Runs one recipe against one device as a session:

    lease → persist in_progress → connect → plan → apply → finalize

Flow:
    initializing → plan_committed → connecting → executing → finalizing
        → succeeded | partially_failed | failed

Per-action failures never abort the session: they are recorded and the
loop moves on. Only structural problems (device busy, history cannot be
written) escape as exceptions. An unreachable device finalizes the
session as failed without touching any handler.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from nldevices.adapters.base import Handler, HandlerContext, Verdict
from nldevices.adapters.registry import HandlerRegistry
from nldevices.adapters.transport.base import Credentials, Transport
from nldevices.adapters.vcs import CommitOutcome
from nldevices.core.config.loader import Settings
from nldevices.core.engine.lease import DeviceLease
from nldevices.core.engine.reconciler import ExecutionPlan, PlannedAction, Reconciler
from nldevices.core.errors import ConnectivityFailure
from nldevices.core.models.action import ActionResult
from nldevices.core.models.device import Device
from nldevices.core.models.recipe import Recipe
from nldevices.core.models.session import (
    ActionRecord,
    Disposition,
    Session,
    SessionStatus,
)
from nldevices.core.persistence.device_store import DeviceStore
from nldevices.core.persistence.history import HistoryWriter

logger = logging.getLogger(__name__)


class SessionPhase(StrEnum):
    """Lifecycle of one session."""

    INITIALIZING = "initializing"
    PLAN_COMMITTED = "plan_committed"
    CONNECTING = "connecting"
    EXECUTING = "executing"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"
    PLANNED = "planned"   # dry run stops here

    @classmethod
    def for_status(cls, status: SessionStatus) -> SessionPhase:
        return {
            SessionStatus.SUCCESS: cls.SUCCEEDED,
            SessionStatus.PARTIAL: cls.PARTIALLY_FAILED,
        }.get(status, cls.FAILED)


@dataclass
class SessionOutcome:
    """What a run produced: the plan (None when the device was unreachable)
    and the finalized session unless dry."""

    plan: ExecutionPlan | None
    phase: SessionPhase
    session: Session | None = None
    commits: list[CommitOutcome] = field(default_factory=list)

    @property
    def dry_run(self) -> bool:
        return self.session is None

    @property
    def ok(self) -> bool:
        if self.session is None:
            return True
        return self.session.status == SessionStatus.SUCCESS

    def to_dict(self) -> dict:
        data: dict = {"phase": str(self.phase), "plan": self.plan.to_dict() if self.plan else None}
        if self.session is not None:
            data["session"] = self.session.model_dump(mode="json")
            data["commits"] = [c.model_dump(mode="json") for c in self.commits]
        return data


class SessionExecutor:
    """Apply a recipe to a device through handlers, one session at a time."""

    def __init__(
        self,
        registry: HandlerRegistry,
        transport: Transport,
        store: DeviceStore,
        history: HistoryWriter,
        settings: Settings,
    ):
        self._registry = registry
        self._transport = transport
        self._store = store
        self._history = history
        self._settings = settings
        self._reconciler = Reconciler(registry, transport, settings)

    @property
    def reconciler(self) -> Reconciler:
        return self._reconciler

    def run(self, device: Device, recipe: Recipe, dry_run: bool | None = None) -> SessionOutcome:
        """Run a recipe on a device.

        Args:
            device: Device snapshot from the store.
            recipe: Loaded recipe.
            dry_run: Plan only. Defaults to ``settings.dry_run``.

        Raises:
            DeviceBusy: Another session holds the device.
            StateWriteError: History or state could not be persisted.
        """
        if dry_run is None:
            dry_run = self._settings.dry_run

        self._enter(SessionPhase.INITIALIZING, device, recipe)
        if dry_run:
            plan = self._reconciler.plan(device, recipe)
            logger.info("[dry run] %s on %s planned, nothing applied", recipe.name, device.hostname)
            return SessionOutcome(plan=plan, phase=SessionPhase.PLANNED)

        lease = DeviceLease(
            self._store.lease_path(device.hostname),
            device.hostname,
            holder=f"{self._settings.executed_by} {recipe.name}",
        )
        with lease:
            session = Session(
                session_id=self._history.allocate_session_id(device.hostname, recipe.name),
                executed_by=self._settings.executed_by,
                recipe=recipe.name,
                hostname=device.hostname,
            )
            commits = [self._history.record_plan(session)]
            self._enter(SessionPhase.PLAN_COMMITTED, device, recipe)

            # Reachability is settled before any probe goes over the transport.
            self._enter(SessionPhase.CONNECTING, device, recipe)
            try:
                self._connect(device)
            except ConnectivityFailure as e:
                session.finalize(SessionStatus.FAILED, error=str(e))
                phase = self._finalize(session, commits, device, recipe)
                return SessionOutcome(plan=None, phase=phase, session=session, commits=commits)

            plan = self._reconciler.plan(device, recipe)
            self._enter(SessionPhase.EXECUTING, device, recipe)
            for entry in plan.entries:
                session.record(self._execute(entry, session))

            session.finalize()
            phase = self._finalize(
                session, commits, device, recipe, touched=[self._store.device_path(device.hostname)]
            )

        return SessionOutcome(plan=plan, phase=phase, session=session, commits=commits)

    # ── Phases ──────────────────────────────────────────────────

    def _enter(self, phase: SessionPhase, device: Device, recipe: Recipe) -> None:
        logger.info("[%s] %s on %s", phase, recipe.name, device.hostname)

    def _connect(self, device: Device) -> None:
        """Check a remote device is reachable, then stamp last_seen."""
        if device.is_remote:
            credentials = Credentials(
                user=device.ssh_user,
                port=device.ssh_port,
                identity_file=self._settings.ssh.identity_file,
            )
            if not self._transport.check(
                device.hostname, credentials, timeout=self._settings.connect_timeout
            ):
                logger.error("Connectivity check failed for %s", device.hostname)
                raise ConnectivityFailure(device.hostname, self._transport.name)
        self._store.touch(device.hostname)

    def _finalize(
        self,
        session: Session,
        commits: list[CommitOutcome],
        device: Device,
        recipe: Recipe,
        touched: list[Path] | None = None,
    ) -> SessionPhase:
        self._enter(SessionPhase.FINALIZING, device, recipe)
        commits.append(self._history.record_result(session, also_commit=touched))
        phase = SessionPhase.for_status(session.status)
        logger.info(
            "[%s] %s on %s: %d succeeded, %d failed, %d skipped",
            phase, recipe.name, device.hostname,
            session.summary.succeeded, session.summary.failed, session.summary.skipped,
        )
        return phase

    # ── Actions ─────────────────────────────────────────────────

    def _execute(self, entry: PlannedAction, session: Session) -> ActionRecord:
        if entry.disposition != Disposition.NEEDS_APPLY:
            logger.info("⊘ %s (%s)", entry.name, entry.reason)
            return ActionRecord(
                action=entry.name,
                result="skipped",
                output=entry.reason,
                disposition=entry.disposition,
            )

        if entry.handler is None or entry.context is None:
            logger.info("✗ %s (%s)", entry.name, entry.reason)
            return ActionRecord(
                action=entry.name,
                result="failed",
                output=entry.reason,
                disposition=entry.disposition,
            )

        result = self._apply(entry.handler, entry.context)
        if result.ok and self._settings.post_verify and entry.handler.has_probe(entry.context):
            verdict = self._post_verify(entry.handler, entry.context)
            if verdict is Verdict.UNSATISFIED:
                result = ActionResult.failure(
                    entry.handler.module,
                    entry.name,
                    error="post-apply verification failed",
                    output=result.output,
                    duration_ms=result.duration_ms,
                )

        if result.ok:
            _merge(session.optimizations, result.optimizations)
            _merge(session.software, result.software)
            logger.info("✓ %s", entry.name)
        else:
            logger.info("✗ %s: %s", entry.name, result.summary_text())

        return ActionRecord(
            action=entry.name,
            result="success" if result.ok else "failed",
            output=result.summary_text(),
            disposition=entry.disposition,
        )

    def _apply(self, handler: Handler, ctx: HandlerContext) -> ActionResult:
        valid, error = handler.validate(ctx)
        if not valid:
            return ActionResult.failure(handler.module, ctx.action, error=error)

        start = time.monotonic()
        try:
            return handler.apply(ctx)
        except Exception as e:
            logger.exception("Handler %s crashed on %s", handler.module, ctx.action)
            return ActionResult.failure(
                handler.module,
                ctx.action,
                error=f"Handler exception: {type(e).__name__}: {e}",
                duration_ms=int((time.monotonic() - start) * 1000),
            )

    def _post_verify(self, handler: Handler, ctx: HandlerContext) -> Verdict:
        try:
            return Verdict(handler.verify(ctx))
        except Exception as e:
            logger.warning("post-apply verify for %s raised: %s", ctx.action, e)
            return Verdict.INDETERMINATE


def _merge(target: dict[str, dict], delta: dict[str, dict]) -> None:
    for key, values in delta.items():
        target.setdefault(key, {}).update(values)
