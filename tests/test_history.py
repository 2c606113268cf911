"""
Tests for HistoryWriter — session records, state merge, commit messages.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from nldevices.adapters.vcs import CommitOutcome, Versioning
from nldevices.core.errors import HistoryImmutable, SessionNotFound, StateWriteError
from nldevices.core.models.device import OSType
from nldevices.core.models.session import ActionRecord, Session, SessionStatus
from nldevices.core.persistence.history import HistoryWriter, commit_message
from nldevices.core.persistence.yaml_io import read_yaml


class RecordingVersioning(Versioning):
    """Versioning double that remembers every commit request."""

    def __init__(self, status: str = "committed"):
        self.status = status
        self.commits: list[tuple[str, list]] = []

    def commit(self, message, paths):
        self.commits.append((message, list(paths)))
        if self.status == "failed":
            return CommitOutcome(status="failed", message=message, error="not a git repository")
        return CommitOutcome(
            status=self.status,
            message=message,
            commit_id="abc1234" if self.status == "committed" else None,
        )

    def log(self, paths, limit=10):
        return [f"abc1234 {m}" for m, _ in self.commits][:limit]


def _session(session_id="2026-03-14-091500", recipe="network-optimize", hostname="iem.lan") -> Session:
    return Session(session_id=session_id, recipe=recipe, hostname=hostname)


@pytest.fixture
def versioning() -> RecordingVersioning:
    return RecordingVersioning()


@pytest.fixture
def writer(store, versioning, settings) -> HistoryWriter:
    return HistoryWriter(store, versioning, settings)


# ── Session ids ──────────────────────────────────────────────────


class TestSessionIds:
    NOW = datetime(2026, 3, 14, 9, 15, 0, tzinfo=UTC)

    def test_format(self, iem, writer):
        assert writer.allocate_session_id("iem.lan", "r", now=self.NOW) == "2026-03-14-091500"

    def test_collision_gets_suffix(self, iem, writer):
        first = _session("2026-03-14-091500", recipe="a")
        writer.record_plan(first)
        assert writer.allocate_session_id("iem.lan", "b", now=self.NOW) == "2026-03-14-091500-2"

        writer.record_plan(_session("2026-03-14-091500-2", recipe="b"))
        assert writer.allocate_session_id("iem.lan", "c", now=self.NOW) == "2026-03-14-091500-3"

    def test_other_devices_do_not_collide(self, iem, store, writer):
        store.register("other.lan", os=OSType.LINUX)
        writer.record_plan(_session("2026-03-14-091500", hostname="other.lan"))
        assert writer.allocate_session_id("iem.lan", "r", now=self.NOW) == "2026-03-14-091500"


# ── Plan and result records ──────────────────────────────────────


class TestRecords:
    def test_plan_is_persisted_in_progress(self, iem, writer, versioning):
        session = _session()
        writer.record_plan(session)

        path = writer.path_for(session)
        assert path.name == "2026-03-14-091500-network-optimize.yml"
        assert read_yaml(path)["status"] == "in_progress"
        assert versioning.commits[0][0] == (
            "Plan: network-optimize on iem.lan [session: 2026-03-14-091500]"
        )

    def test_record_omits_state_deltas(self, iem, writer):
        session = _session()
        session.optimizations = {"network": {"k": "v"}}
        writer.record_plan(session)
        data = read_yaml(writer.path_for(session))
        assert "optimizations" not in data
        assert "software" not in data

    def test_result_commit_prefix(self, iem, writer, versioning):
        for status, prefix in [
            (SessionStatus.SUCCESS, "Applied"),
            (SessionStatus.PARTIAL, "Partial"),
            (SessionStatus.FAILED, "Failed"),
        ]:
            session = _session(session_id=f"2026-03-14-09150{len(versioning.commits)}")
            writer.record_plan(session)
            session.finalize(status)
            writer.record_result(session)
            assert versioning.commits[-1][0].startswith(f"{prefix}: network-optimize on iem.lan")

    def test_result_finalizes_open_session(self, iem, writer):
        session = _session()
        session.record(ActionRecord(action="a", result="success"))
        writer.record_result(session)
        assert session.status == SessionStatus.SUCCESS
        assert session.completed is not None

    def test_finalized_record_is_immutable(self, iem, writer):
        session = _session()
        writer.record_plan(session)
        session.finalize(SessionStatus.SUCCESS)
        writer.record_result(session)

        with pytest.raises(HistoryImmutable):
            writer.record_result(session)
        with pytest.raises(HistoryImmutable):
            writer.record_plan(_session())

    def test_state_saved_before_record_is_finalized(self, iem, store, writer):
        seen = []
        original = store.save

        def tracking_save(hostname, state):
            seen.append(read_yaml(writer.path_for(session))["status"])
            original(hostname, state)

        store.save = tracking_save
        session = _session()
        writer.record_plan(session)
        session.record(ActionRecord(action="a", result="success"))
        session.optimizations = {"network": {"k": "v"}}
        writer.record_result(session)
        assert seen == ["in_progress"]
        assert read_yaml(writer.path_for(session))["status"] == "success"

    def test_state_write_failure_finalizes_record_as_failed(self, iem, store, writer, versioning, monkeypatch):
        def broken_save(hostname, state):
            raise StateWriteError("Cannot write state.yml: disk full")

        monkeypatch.setattr(store, "save", broken_save)
        session = _session()
        writer.record_plan(session)
        session.record(ActionRecord(action="a", result="success"))
        session.optimizations = {"network": {"k": "v"}}

        with pytest.raises(StateWriteError):
            writer.record_result(session)

        data = read_yaml(writer.path_for(session))
        assert data["status"] == "failed"
        assert data["error"] == "state write failed: Cannot write state.yml: disk full"
        assert versioning.commits[-1][0].startswith("Failed: network-optimize on iem.lan")
        assert store.load("iem.lan").applied_recipes == []

    def test_versioning_failure_does_not_raise(self, iem, store, settings):
        writer = HistoryWriter(store, RecordingVersioning(status="failed"), settings)
        session = _session()
        outcome = writer.record_plan(session)
        assert outcome.failed
        assert writer.path_for(session).is_file()


# ── State merge ──────────────────────────────────────────────────


class TestStateMerge:
    def _finish(self, writer, records, optimizations=None, session_id="2026-03-14-091500"):
        session = _session(session_id=session_id)
        for record in records:
            session.record(record)
        session.optimizations = optimizations or {}
        session.finalize()
        return session, writer.record_result(session)

    def test_success_merges_and_appends(self, iem, store, writer, versioning):
        session, _ = self._finish(
            writer,
            [ActionRecord(action="a", result="success")],
            {"network": {"net.core.rmem_max": "16777216"}},
        )
        state = store.load("iem.lan")
        assert state.optimizations["network"] == {"net.core.rmem_max": "16777216"}
        assert state.applied_recipes[0].session_id == session.session_id
        assert store.state_path("iem.lan") in versioning.commits[-1][1]

    def test_failed_session_not_appended(self, iem, store, writer):
        self._finish(writer, [ActionRecord(action="a", result="failed")])
        assert store.load("iem.lan").applied_recipes == []

    def test_all_skipped_first_time_is_appended(self, iem, store, writer):
        self._finish(writer, [ActionRecord(action="a", result="skipped")])
        assert [r.name for r in store.load("iem.lan").applied_recipes] == ["network-optimize"]

    def test_all_skipped_again_leaves_state_untouched(self, iem, store, writer, versioning):
        self._finish(writer, [ActionRecord(action="a", result="success")], {"network": {"k": 1}})
        before = store.state_path("iem.lan").read_text()

        self._finish(writer, [ActionRecord(action="a", result="skipped")], session_id="2026-03-14-091600")
        assert store.state_path("iem.lan").read_text() == before
        assert versioning.commits[-1][1] == [
            store.history_dir("iem.lan") / "2026-03-14-091600-network-optimize.yml"
        ]

    def test_partial_merges_only_successful_deltas(self, iem, store, writer):
        self._finish(
            writer,
            [ActionRecord(action="a", result="success"), ActionRecord(action="b", result="failed")],
            {"network": {"net.core.rmem_max": "16777216"}},
        )
        state = store.load("iem.lan")
        assert state.optimizations["network"] == {"net.core.rmem_max": "16777216"}
        assert len(state.applied_recipes) == 1

    def test_last_updated_never_decreases(self, iem, store, writer):
        before = store.load("iem.lan").last_updated
        self._finish(writer, [ActionRecord(action="a", result="success")], {"network": {"k": 1}})
        assert store.load("iem.lan").last_updated >= before


# ── Reads ────────────────────────────────────────────────────────


class TestReads:
    def test_list_sessions_newest_first(self, iem, writer):
        for sid in ["2026-03-14-091500", "2026-03-14-091700", "2026-03-14-091600"]:
            session = _session(session_id=sid)
            session.started = datetime.strptime(sid, "%Y-%m-%d-%H%M%S").replace(tzinfo=UTC)
            writer.record_plan(session)

        ids = [s.session_id for s in writer.list_sessions("iem.lan")]
        assert ids == ["2026-03-14-091700", "2026-03-14-091600", "2026-03-14-091500"]
        assert len(writer.list_sessions("iem.lan", limit=2)) == 2

    def test_unreadable_record_is_skipped(self, iem, store, writer):
        writer.record_plan(_session())
        (store.history_dir("iem.lan") / "garbage.yml").write_text("{not: [valid", encoding="utf-8")
        assert len(writer.list_sessions("iem.lan")) == 1

    def test_read_by_id(self, iem, writer):
        writer.record_plan(_session())
        assert writer.read("iem.lan", "2026-03-14-091500").recipe == "network-optimize"

    def test_read_missing(self, iem, writer):
        with pytest.raises(SessionNotFound):
            writer.read("iem.lan", "2020-01-01-000000")

    def test_commit_message_format(self):
        assert commit_message("Partial", _session()) == (
            "Partial: network-optimize on iem.lan [session: 2026-03-14-091500]"
        )
