"""Thin wrappers around the ``git`` executable.

Every helper fails soft: a missing executable, a non-zero exit status or a
path outside a repository all read as "no output".
"""

from __future__ import annotations

import subprocess
from pathlib import Path


class GitHelper:
    """Run read-only git queries relative to ``root``."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or Path.cwd()

    def _run(self, *args: str) -> str:
        try:
            completed = subprocess.run(
                ["git", *args],
                cwd=self.root,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError:
            return ""
        if completed.returncode != 0:
            return ""
        return completed.stdout

    def is_git_repository(self) -> bool:
        return bool(self._run("rev-parse", "--git-dir").strip())

    def has_changes(self, filename: str) -> bool:
        """True when ``filename`` has staged, unstaged or untracked changes."""
        status = self._run("status", "--porcelain", "--", filename)
        return filename in status

    def show_head(self, filename: str) -> str | None:
        """Return ``filename`` as committed at HEAD, or None if it is not tracked there."""
        content = self._run("show", f"HEAD:./{filename}")
        return content or None

    def current_branch(self) -> str:
        return self._run("rev-parse", "--abbrev-ref", "HEAD").strip() or "unknown"

    def last_commit_hash(self) -> str:
        return self._run("rev-parse", "HEAD").strip() or "unknown"
