"""Changed-file discovery backed by the ``git`` command line."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from .models import DetectionSettings, normalize_path

logger = logging.getLogger(__name__)


class GitCommandError(RuntimeError):
    """Raised when git cannot produce the list of changed files."""


class GitChangedFilesDetector:
    """Lists files changed in a working tree relative to a base reference.

    The diff is taken against the merge base of ``HEAD`` and the configured
    base branch, so committed, staged and unstaged changes on the current
    branch are all reported. Untracked files are added when
    ``settings.include_untracked`` is set. Paths are relative to
    *working_tree_root*.
    """

    def __init__(self, git_executable: str = "git"):
        self.git_executable = git_executable

    def get_changed_files(self, working_tree_root: Path, settings: DetectionSettings) -> List[str]:
        root = Path(working_tree_root)
        base = self._resolve_base(root, settings)
        logger.debug("Diffing %s against %s", root, base)

        changed = self._lines(self._run(root, ["diff", "--name-only", "--relative", base], settings))
        if settings.include_untracked:
            untracked = self._lines(
                self._run(root, ["ls-files", "--others", "--exclude-standard"], settings)
            )
            changed.extend(untracked)

        seen = set()
        unique: List[str] = []
        for path in changed:
            if path not in seen:
                seen.add(path)
                unique.append(path)
        return unique

    def _resolve_base(self, root: Path, settings: DetectionSettings) -> str:
        merge_base = self._try_run(root, ["merge-base", settings.base_branch, "HEAD"], settings)
        if merge_base:
            return merge_base.strip()

        if self._try_run(root, ["rev-parse", "--verify", "--quiet", settings.base_branch], settings):
            logger.warning("No merge base with '%s'; diffing against it directly", settings.base_branch)
            return settings.base_branch

        logger.warning("Base branch '%s' not found; diffing against HEAD", settings.base_branch)
        return "HEAD"

    def _try_run(self, root: Path, args: Sequence[str], settings: DetectionSettings) -> Optional[str]:
        try:
            return self._run(root, args, settings)
        except GitCommandError as exc:
            logger.debug("%s", exc)
            return None

    def _run(self, root: Path, args: Sequence[str], settings: DetectionSettings) -> str:
        command = [self.git_executable, "-c", "core.quotePath=false", *args]
        try:
            result = subprocess.run(
                command,
                cwd=str(root),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=settings.git_timeout,
            )
        except FileNotFoundError as exc:
            raise GitCommandError(f"git executable not found: {self.git_executable}") from exc
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(
                f"'{' '.join(command)}' timed out after {settings.git_timeout:g}s"
            ) from exc

        if result.returncode != 0:
            raise GitCommandError(f"'{' '.join(command)}' failed: {result.stderr.strip()}")
        return result.stdout

    @staticmethod
    def _lines(output: str) -> List[str]:
        return [normalize_path(line.strip()) for line in output.splitlines() if line.strip()]
