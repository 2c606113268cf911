"""
Tests for git versioning against real temporary repositories.
"""

from __future__ import annotations

import shutil
import subprocess

import pytest

from nldevices.adapters.vcs import GitVersioning, NullVersioning
from nldevices.core.engine.executor import SessionExecutor
from nldevices.core.persistence.history import HistoryWriter

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(root, *args) -> str:
    return subprocess.run(
        ["git", "-C", str(root), *args], capture_output=True, text=True, check=True,
    ).stdout


@pytest.fixture
def repo(tmp_path):
    _git(tmp_path, "init", "-q")
    _git(tmp_path, "config", "user.name", "Inventory Bot")
    _git(tmp_path, "config", "user.email", "inventory@example.com")
    _git(tmp_path, "config", "commit.gpgsign", "false")
    return tmp_path


class TestGitVersioning:
    def test_commit(self, repo):
        target = repo / "devices" / "iem.lan" / "device.yml"
        target.parent.mkdir(parents=True)
        target.write_text("hostname: iem.lan\n", encoding="utf-8")

        outcome = GitVersioning(repo).commit("Register: iem.lan", [target.parent])
        assert outcome.status == "committed"
        assert outcome.commit_id
        assert _git(repo, "log", "-1", "--format=%s").strip() == "Register: iem.lan"

    def test_noop_when_unchanged(self, repo):
        target = repo / "state.yml"
        target.write_text("a: 1\n", encoding="utf-8")
        versioning = GitVersioning(repo)
        versioning.commit("first", [target])
        assert versioning.commit("second", [target]).status == "noop"

    def test_only_given_paths_are_committed(self, repo):
        ours = repo / "devices" / "iem.lan" / "state.yml"
        ours.parent.mkdir(parents=True)
        ours.write_text("a: 1\n", encoding="utf-8")
        unrelated = repo / "notes.txt"
        unrelated.write_text("work in progress\n", encoding="utf-8")

        GitVersioning(repo).commit("Applied: x", [ours])
        assert "notes.txt" in _git(repo, "status", "--porcelain")

    def test_not_a_repository(self, tmp_path):
        outcome = GitVersioning(tmp_path).commit("Plan: x", [tmp_path / "f"])
        assert outcome.failed
        assert "not a git repository" in outcome.error

    def test_removal_is_committed(self, repo):
        target = repo / "devices" / "old.lan" / "device.yml"
        target.parent.mkdir(parents=True)
        target.write_text("hostname: old.lan\n", encoding="utf-8")
        versioning = GitVersioning(repo)
        versioning.commit("Register: old.lan", [target.parent])

        shutil.rmtree(target.parent)
        assert versioning.commit("Remove: old.lan", [target.parent]).status == "committed"

    def test_log(self, repo):
        target = repo / "devices" / "iem.lan" / "device.yml"
        target.parent.mkdir(parents=True)
        target.write_text("v: 1\n", encoding="utf-8")
        versioning = GitVersioning(repo)
        versioning.commit("Register: iem.lan", [target.parent])
        target.write_text("v: 2\n", encoding="utf-8")
        versioning.commit("Register: iem.lan again", [target.parent])

        lines = versioning.log([target.parent], limit=5)
        assert [line.split(" ", 1)[1] for line in lines] == ["Register: iem.lan again", "Register: iem.lan"]

    def test_null_versioning(self, tmp_path):
        outcome = NullVersioning().commit("anything", [tmp_path])
        assert outcome.status == "noop"
        assert NullVersioning().log([tmp_path]) == []


class TestSessionCommits:
    def test_plan_and_result_commits(self, repo, settings, iem, network_optimize, sysctl_registry, kernel, store):
        settings.root = repo
        from nldevices.core.config.recipe_loader import RecipeLoader

        history = HistoryWriter(store, GitVersioning(repo), settings)
        recipe = RecipeLoader(settings.recipes_path).load("network-optimize")
        outcome = SessionExecutor(sysctl_registry, kernel, store, history, settings).run(iem, recipe)

        sid = outcome.session.session_id
        subjects = _git(repo, "log", "--format=%s").splitlines()
        assert subjects == [
            f"Applied: network-optimize on iem.lan [session: {sid}]",
            f"Plan: network-optimize on iem.lan [session: {sid}]",
        ]
        assert [c.status for c in outcome.commits] == ["committed", "committed"]
        tracked = _git(repo, "ls-files").splitlines()
        assert "devices/iem.lan/state.yml" in tracked
        assert not any(path.endswith(".lease") for path in tracked)

    def test_last_seen_is_committed_with_result(self, repo, settings, iem, network_optimize, sysctl_registry, kernel, store):
        settings.root = repo
        from nldevices.core.config.recipe_loader import RecipeLoader

        history = HistoryWriter(store, GitVersioning(repo), settings)
        recipe = RecipeLoader(settings.recipes_path).load("network-optimize")
        SessionExecutor(sysctl_registry, kernel, store, history, settings).run(iem, recipe)

        assert "devices/iem.lan/device.yml" in _git(repo, "ls-files").splitlines()
        assert _git(repo, "status", "--porcelain", "--untracked-files=no", "devices") == ""
