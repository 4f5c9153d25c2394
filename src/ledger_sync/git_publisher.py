"""Best-effort push of the persisted snapshot to a git remote."""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishResult:
    success: bool
    error: Optional[str] = None


class GitPublisher:
    """Commits and pushes one file. Failures are reported, never raised."""

    def __init__(
        self,
        *,
        repo_dir: Path | str,
        path: Path | str,
        remote: str = "origin",
        branch: str = "main",
        timeout: float = 120,
    ) -> None:
        self._repo_dir = Path(repo_dir)
        self._path = str(path)
        self._remote = remote
        self._branch = branch
        self._timeout = timeout

    def publish(self, message: str) -> PublishResult:
        LOGGER.info("Publishing %s to %s/%s", self._path, self._remote, self._branch)
        add = self._git(["add", self._path])
        if add.returncode != 0:
            return PublishResult(False, "Add failed")

        commit = self._git(["commit", "-m", message])
        if commit.returncode != 0 and "nothing" not in (commit.stdout + commit.stderr):
            return PublishResult(False, "Commit failed")

        pull = self._git(["pull", "--rebase", self._remote, self._branch])
        if pull.returncode != 0:
            LOGGER.warning("git pull --rebase failed (ignored): %s", pull.stderr.strip())

        push = self._git(["push", self._remote, self._branch])
        if push.returncode != 0:
            LOGGER.warning("git push failed: %s", push.stderr.strip())
            return PublishResult(False, "Push failed")
        LOGGER.info("Push OK")
        return PublishResult(True)

    def _git(self, args: Sequence[str]) -> subprocess.CompletedProcess:
        command: List[str] = ["git", *args]
        LOGGER.debug("Running %s", " ".join(command))
        try:
            return subprocess.run(
                command,
                cwd=self._repo_dir,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            LOGGER.warning("git %s could not run: %s", args[0], exc)
            return subprocess.CompletedProcess(command, returncode=1, stdout="", stderr=str(exc))
