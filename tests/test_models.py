"""
Tests for the domain models.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from nldevices.core.engine.executor import SessionPhase
from nldevices.core.models import (
    ActionRecord,
    ActionResult,
    Device,
    DeviceState,
    OSType,
    Recipe,
    Session,
    SessionStatus,
    SessionSummary,
    VerifySpec,
    utc_now,
)


# ── Device ───────────────────────────────────────────────────────


class TestDevice:
    def test_defaults(self):
        device = Device(hostname="iem.lan")
        assert device.os == OSType.UNKNOWN
        assert device.ssh_user == "newlevel"
        assert device.ssh_port == 22
        assert device.is_remote

    def test_local_connection(self):
        assert not Device(hostname="localhost", connection="local").is_remote

    def test_rejects_unknown_connection(self):
        with pytest.raises(ValidationError):
            Device(hostname="x", connection="telnet")

    def test_utc_now_has_no_microseconds(self):
        now = utc_now()
        assert now.microsecond == 0
        assert now.utcoffset() == timedelta(0)


# ── DeviceState ──────────────────────────────────────────────────


class TestDeviceState:
    def test_default_categories(self):
        assert DeviceState().optimizations == {"network": {}, "power": {}, "audio": {}}

    def test_merge_optimizations(self):
        state = DeviceState()
        assert state.merge_optimizations({"network": {"a": "1"}, "kernel": {"b": "2"}})
        assert state.optimizations["kernel"] == {"b": "2"}
        assert not state.merge_optimizations({"network": {"a": "1"}})
        assert state.merge_optimizations({"network": {"a": "3"}})
        assert state.optimizations["network"] == {"a": "3"}

    def test_merge_software(self):
        state = DeviceState()
        assert state.merge_software({"reaper": {"manager": "winget"}})
        assert not state.merge_software({"reaper": {"manager": "winget"}})

    def test_touch_is_monotonic(self):
        state = DeviceState()
        before = state.last_updated
        state.touch(before - timedelta(days=1))
        assert state.last_updated == before
        state.touch(before + timedelta(seconds=1))
        assert state.last_updated == before + timedelta(seconds=1)


# ── Recipe ───────────────────────────────────────────────────────


class TestRecipe:
    def test_platforms_derived_from_actions(self):
        recipe = Recipe.model_validate({
            "name": "r",
            "actions": [
                {"name": "a", "linux": {"module": "sysctl"}},
                {"name": "b", "windows": {"module": "registry"}, "linux": {"module": "sysctl"}},
            ],
        })
        assert recipe.platforms == [OSType.LINUX, OSType.WINDOWS]
        assert recipe.supports(OSType.WINDOWS)
        assert not recipe.supports(OSType.MACOS)

    def test_declared_platforms_win(self):
        recipe = Recipe.model_validate({"name": "r", "platforms": ["macos"], "actions": []})
        assert recipe.platforms == [OSType.MACOS]

    def test_action_without_spec_is_kept(self):
        recipe = Recipe.model_validate({"name": "r", "actions": [{"name": "doc-only"}]})
        assert recipe.get_action("doc-only").specs == {}
        assert recipe.get_action("missing") is None

    def test_unknown_platform_key_rejected(self):
        with pytest.raises(ValidationError):
            Recipe.model_validate({"name": "r", "actions": [{"name": "a", "freebsd": {"module": "x"}}]})

    def test_recipe_is_frozen(self):
        recipe = Recipe(name="r")
        with pytest.raises(ValidationError):
            recipe.name = "other"

    def test_verify_from_string(self):
        assert VerifySpec.model_validate("test -f /etc/x") == VerifySpec(command="test -f /etc/x")


# ── Session ──────────────────────────────────────────────────────


class TestSessionSummary:
    @pytest.mark.parametrize("results,expected", [
        ([], SessionStatus.SUCCESS),
        (["success", "skipped"], SessionStatus.SUCCESS),
        (["skipped", "skipped"], SessionStatus.SUCCESS),
        (["success", "failed"], SessionStatus.PARTIAL),
        (["skipped", "failed"], SessionStatus.PARTIAL),
        (["failed", "failed"], SessionStatus.FAILED),
    ])
    def test_final_status(self, results, expected):
        records = [ActionRecord(action=f"a{i}", result=r) for i, r in enumerate(results)]
        assert SessionSummary.tally(records).final_status() == expected

    def test_counts(self):
        records = [
            ActionRecord(action="a", result="success"),
            ActionRecord(action="b", result="failed"),
            ActionRecord(action="c", result="skipped"),
            ActionRecord(action="d", result="success"),
        ]
        summary = SessionSummary.tally(records)
        assert (summary.total_actions, summary.succeeded, summary.failed, summary.skipped) == (4, 2, 1, 1)


class TestSession:
    def test_finalize(self):
        session = Session(session_id="2026-03-14-091500", recipe="r", hostname="iem.lan")
        assert not session.is_terminal
        session.record(ActionRecord(action="a", result="failed", output="boom"))
        session.finalize()
        assert session.status == SessionStatus.FAILED
        assert session.is_terminal
        assert session.failed_actions == ["a"]
        assert session.completed >= session.started

    def test_forced_status_and_error(self):
        session = Session(session_id="s", recipe="r", hostname="h")
        session.finalize(SessionStatus.FAILED, error="Cannot reach h over ssh")
        assert session.status == SessionStatus.FAILED
        assert session.error == "Cannot reach h over ssh"
        assert session.summary.total_actions == 0

    def test_deltas_not_serialized(self):
        session = Session(session_id="s", recipe="r", hostname="h")
        session.optimizations = {"network": {"k": "v"}}
        dumped = session.model_dump(mode="json")
        assert "optimizations" not in dumped
        assert dumped["status"] == "in_progress"

    @pytest.mark.parametrize("status,phase", [
        (SessionStatus.SUCCESS, SessionPhase.SUCCEEDED),
        (SessionStatus.PARTIAL, SessionPhase.PARTIALLY_FAILED),
        (SessionStatus.FAILED, SessionPhase.FAILED),
    ])
    def test_phase_for_status(self, status, phase):
        assert SessionPhase.for_status(status) == phase


# ── ActionResult ─────────────────────────────────────────────────


class TestActionResult:
    def test_failure_summary_prefers_error(self):
        result = ActionResult.failure("sysctl", "a", error="permission denied", output="partial output")
        assert result.failed
        assert result.summary_text() == "permission denied"

    def test_success_summary_is_output(self):
        result = ActionResult.success("sysctl", "a", output="net.core.rmem_max = 16777216")
        assert result.ok
        assert result.summary_text() == "net.core.rmem_max = 16777216"

    def test_has_changes(self):
        assert not ActionResult.success("m", "a").has_changes
        assert ActionResult.success("m", "a", optimizations={"network": {"k": 1}}).has_changes
