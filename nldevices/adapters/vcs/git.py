"""
Git versioning — mirror the inventory history into git commits.

The history and state files are the authoritative audit trail; git is
a secondary mirror. A commit therefore has three distinct outcomes:

    committed   changes were staged and a commit was created
    noop        nothing under the given paths changed
    failed      git itself errored (not a repo, hooks, identity, ...)

Callers log ``failed`` as a warning and carry on. Uses the git CLI,
never a library binding.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CommitOutcome(BaseModel):
    """Result of one commit request."""

    status: Literal["committed", "noop", "failed"]
    commit_id: str | None = None
    message: str = ""
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status == "failed"


class Versioning(ABC):
    """Append-only versioned log with commit semantics."""

    @abstractmethod
    def commit(self, message: str, paths: list[Path]) -> CommitOutcome:
        """Record the current content of ``paths`` under ``message``."""

    def log(self, paths: list[Path], limit: int = 10) -> list[str]:
        """One-line history entries touching ``paths``, newest first."""
        return []


class NullVersioning(Versioning):
    """Versioning switched off: every commit is a no-op."""

    def commit(self, message: str, paths: list[Path]) -> CommitOutcome:
        logger.debug("Versioning disabled, not committing: %s", message)
        return CommitOutcome(status="noop", message=message)


class GitVersioning(Versioning):
    """Commit inventory paths in the git repository at ``root``.

    Only the given paths are staged and committed, so unrelated work in
    the operator's checkout is never swept into an inventory commit.
    """

    def __init__(self, root: Path, timeout: int = 30, sign: bool = False):
        self._root = root
        self._timeout = timeout
        self._sign = sign

    @property
    def root(self) -> Path:
        return self._root

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def is_repository(self) -> bool:
        try:
            r = self._git("rev-parse", "--is-inside-work-tree")
        except (OSError, subprocess.TimeoutExpired):
            return False
        return r.returncode == 0 and r.stdout.strip() == "true"

    def commit(self, message: str, paths: list[Path]) -> CommitOutcome:
        if not self.is_repository():
            return CommitOutcome(
                status="failed",
                message=message,
                error=f"{self._root} is not a git repository",
            )

        rel = [self._relative(p) for p in paths] or ["."]
        try:
            r = self._git("add", "-A", "--", *rel)
            if r.returncode != 0:
                return self._failure(message, "git add", r)

            # Exit 0 = nothing staged under these paths, 1 = changes, else error
            r = self._git("diff", "--cached", "--quiet", "--", *rel)
            if r.returncode == 0:
                logger.info("No changes to commit for: %s", message)
                return CommitOutcome(status="noop", message=message)
            if r.returncode != 1:
                return self._failure(message, "git diff", r)

            args = ["commit", "-m", message]
            if not self._sign:
                args.append("--no-gpg-sign")
            r = self._git(*args, "--", *rel)
            if r.returncode != 0:
                return self._failure(message, "git commit", r)

            sha = self._git("rev-parse", "HEAD").stdout.strip()
        except (OSError, subprocess.TimeoutExpired) as e:
            return CommitOutcome(status="failed", message=message, error=f"git error: {e}")

        logger.info("Committed %s: %s", sha[:12], message)
        return CommitOutcome(status="committed", commit_id=sha, message=message)

    def log(self, paths: list[Path], limit: int = 10) -> list[str]:
        rel = [self._relative(p) for p in paths]
        try:
            r = self._git("log", "--oneline", "--no-decorate", "-n", str(limit), "--", *rel)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("git log failed: %s", e)
            return []
        if r.returncode != 0:
            logger.warning("git log failed: %s", r.stderr.strip())
            return []
        return [line for line in r.stdout.splitlines() if line.strip()]

    # ── Helpers ─────────────────────────────────────────────────

    def _relative(self, path: Path) -> str:
        try:
            return str(path.resolve().relative_to(self._root.resolve()))
        except ValueError:
            return str(path)

    def _failure(
        self, message: str, step: str, r: subprocess.CompletedProcess[str]
    ) -> CommitOutcome:
        error = r.stderr.strip() or r.stdout.strip() or f"{step} exited with code {r.returncode}"
        return CommitOutcome(status="failed", message=message, error=f"{step}: {error}")

    def _git(self, *args: str) -> subprocess.CompletedProcess[str]:
        """Run a git command in the inventory root."""
        cmd = ["git", "-C", str(self._root), *args]
        logger.debug("git: %s", " ".join(cmd))
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=self._timeout,
        )
