"""
History writer — the device's audit trail.

Each session gets one record, devices/<hostname>/history/<id>-<recipe>.yml.
It is written twice: in_progress when the plan is committed, and once
more when the session finalizes. After that it is immutable.

Finalization is also the only moment DeviceState changes: deltas of the
successful actions are merged, the recipe is appended to
applied_recipes, and both files are mirrored into versioning. State is
saved while the in-progress record exists and before the record is
finalized, so state never names a session that has no record and a
final "success" record always has its changes in state.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import yaml
from pydantic import ValidationError

from nldevices.adapters.vcs import CommitOutcome, Versioning
from nldevices.core.config.loader import Settings
from nldevices.core.errors import (
    DeviceRecordError,
    HistoryImmutable,
    SessionNotFound,
    StateWriteError,
)
from nldevices.core.models.device import utc_now
from nldevices.core.models.session import Session, SessionStatus
from nldevices.core.models.state import AppliedRecipe
from nldevices.core.persistence.device_store import DeviceStore
from nldevices.core.persistence.yaml_io import read_yaml, write_model

logger = logging.getLogger(__name__)

SESSION_ID_FORMAT = "%Y-%m-%d-%H%M%S"

_COMMIT_PREFIX = {
    SessionStatus.SUCCESS: "Applied",
    SessionStatus.PARTIAL: "Partial",
    SessionStatus.FAILED: "Failed",
}


def commit_message(prefix: str, session: Session) -> str:
    return f"{prefix}: {session.recipe} on {session.hostname} [session: {session.session_id}]"


class HistoryWriter:
    """Persist session records and fold their outcome into device state."""

    def __init__(self, store: DeviceStore, versioning: Versioning, settings: Settings):
        self._store = store
        self._versioning = versioning
        self._settings = settings

    @property
    def versioning(self) -> Versioning:
        return self._versioning

    def path_for(self, session: Session) -> Path:
        return self._store.history_dir(session.hostname) / f"{session.session_id}-{session.recipe}.yml"

    # ── Session ids ─────────────────────────────────────────────

    def allocate_session_id(
        self, hostname: str, recipe: str, now: datetime | None = None
    ) -> str:
        """Timestamp id, suffixed -2, -3, ... when already taken on this device."""
        base = (now or utc_now()).strftime(SESSION_ID_FORMAT)
        taken = self._ids_with_prefix(hostname, base)
        candidate = base
        n = 1
        while candidate in taken:
            n += 1
            candidate = f"{base}-{n}"
        logger.debug("Allocated session %s for %s on %s", candidate, recipe, hostname)
        return candidate

    def _ids_with_prefix(self, hostname: str, prefix: str) -> set[str]:
        ids = set()
        for path in self._record_files(hostname):
            if not path.name.startswith(prefix):
                continue
            session = self._load(path)
            if session is not None:
                ids.add(session.session_id)
        return ids

    # ── Writes ──────────────────────────────────────────────────

    def record_plan(self, session: Session) -> CommitOutcome:
        """Persist the in-progress record before any action runs.

        Raises:
            HistoryImmutable: A finalized record already has this path.
            StateWriteError: The record could not be written.
        """
        path = self.path_for(session)
        self._guard(path)
        self._write(session, path)
        return self._commit(commit_message("Plan", session), [path])

    def record_result(
        self, session: Session, also_commit: list[Path] | None = None
    ) -> CommitOutcome:
        """Merge the outcome into state, write the final record, commit both.

        ``also_commit`` names other files the session touched, such as
        device.yml after last_seen was stamped.

        State is saved while the record on disk is still in progress. If
        the state save fails, the record is finalized as failed with the
        write error and the error is re-raised.

        Raises:
            HistoryImmutable: The record was already finalized.
            StateWriteError: Record or state could not be written.
        """
        if not session.is_terminal:
            session.finalize()

        path = self.path_for(session)
        self._guard(path)

        paths = [path, *(also_commit or [])]
        try:
            if self._merge_state(session):
                paths.append(self._store.state_path(session.hostname))
        except StateWriteError as e:
            session.status = SessionStatus.FAILED
            session.error = f"state write failed: {e}"
            self._write(session, path)
            self._commit(commit_message(_COMMIT_PREFIX[session.status], session), paths)
            raise

        self._write(session, path)

        prefix = _COMMIT_PREFIX[session.status]
        return self._commit(commit_message(prefix, session), paths)

    def _merge_state(self, session: Session) -> bool:
        """Fold a finalized session into DeviceState. Returns True if saved."""
        try:
            state = self._store.load(session.hostname)
        except DeviceRecordError as e:
            raise StateWriteError(f"Cannot update state for {session.hostname}: {e}") from e

        changed = state.merge_optimizations(session.optimizations)
        changed = state.merge_software(session.software) or changed

        if session.status in (SessionStatus.SUCCESS, SessionStatus.PARTIAL) and (
            session.summary.succeeded > 0 or not state.has_applied(session.recipe)
        ):
            state.applied_recipes.append(
                AppliedRecipe(
                    name=session.recipe,
                    applied_at=session.completed or utc_now(),
                    session_id=session.session_id,
                )
            )
            changed = True

        if not changed:
            logger.info("State of %s unchanged by session %s", session.hostname, session.session_id)
            return False

        state.touch(session.completed)
        self._store.save(session.hostname, state)
        return True

    # ── Reads ───────────────────────────────────────────────────

    def list_sessions(self, hostname: str, limit: int | None = 10) -> list[Session]:
        """Most recent sessions first."""
        sessions = [s for s in (self._load(p) for p in self._record_files(hostname)) if s]
        sessions.sort(key=lambda s: (s.started, s.session_id), reverse=True)
        return sessions[:limit] if limit else sessions

    def read(self, hostname: str, session_id: str) -> Session:
        for path in self._record_files(hostname):
            if not path.name.startswith(f"{session_id}-"):
                continue
            session = self._load(path)
            if session is not None and session.session_id == session_id:
                return session
        raise SessionNotFound(hostname, session_id)

    # ── Helpers ─────────────────────────────────────────────────

    def _record_files(self, hostname: str) -> list[Path]:
        directory = self._store.history_dir(hostname)
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.glob("*.yml") if p.is_file())

    def _load(self, path: Path) -> Session | None:
        try:
            return Session.model_validate(read_yaml(path))
        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.warning("Skipping unreadable session record %s: %s", path, e)
            return None

    def _guard(self, path: Path) -> None:
        if not path.is_file():
            return
        existing = self._load(path)
        if existing is not None and existing.is_terminal:
            raise HistoryImmutable(
                f"Session {existing.session_id} on {existing.hostname} is already "
                f"finalized ({existing.status}); start a new session instead"
            )

    def _write(self, session: Session, path: Path) -> None:
        try:
            write_model(session, path)
        except OSError as e:
            logger.error("Failed to write session record %s: %s", path, e)
            raise StateWriteError(f"Cannot write {path}: {e}") from e

    def _commit(self, message: str, paths: list[Path]) -> CommitOutcome:
        outcome = self._versioning.commit(message, paths)
        if outcome.failed:
            logger.warning("Versioning failed for '%s': %s", message, outcome.error)
        elif outcome.status == "noop":
            logger.info("Nothing to version for '%s'", message)
        return outcome
