"""Git worktree registry access."""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from specks.core.exceptions import GitCommandError

from .repository import run_git

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryEntry:
    """One entry of ``git worktree list --porcelain``."""

    path: Path
    head: Optional[str] = None
    branch: Optional[str] = None
    branch_ref: Optional[str] = None
    bare: bool = False
    detached: bool = False
    prunable: bool = False


def parse_worktree_list(stdout: str) -> List[RegistryEntry]:
    """Parse ``git worktree list --porcelain`` output into registry entries."""
    entries: List[RegistryEntry] = []
    current: dict = {}

    def _flush() -> None:
        if current.get("path"):
            entries.append(RegistryEntry(**current))
        current.clear()

    for raw in stdout.splitlines():
        line = raw.strip()
        if not line:
            _flush()
            continue

        if line.startswith("worktree "):
            _flush()
            current["path"] = Path(line.split(" ", 1)[1])
        elif line.startswith("HEAD "):
            current["head"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            ref = line.split(" ", 1)[1]
            current["branch_ref"] = ref
            current["branch"] = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
        elif line == "bare":
            current["bare"] = True
        elif line == "detached":
            current["detached"] = True
        elif line.startswith("prunable"):
            current["prunable"] = True

    _flush()
    return entries


def list_registry(repo_root: Path) -> List[RegistryEntry]:
    """All worktrees git knows about, primary checkout first."""
    result = run_git(repo_root, "worktree", "list", "--porcelain")
    return parse_worktree_list(result.stdout)


def prune_worktrees(repo_root: Path) -> None:
    """Drop registry entries whose directories no longer exist."""
    run_git(repo_root, "worktree", "prune")


def add_worktree(repo_root: Path, path: Path, branch: str) -> None:
    run_git(repo_root, "worktree", "add", str(path), branch)


def remove_worktree_dir(repo_root: Path, path: Path) -> None:
    """Remove a worktree: graceful, then forced, then straight off the filesystem.

    Raises:
        OSError: Only when the directory still exists after every attempt.
    """
    try:
        run_git(repo_root, "worktree", "remove", "--", str(path))
        return
    except GitCommandError as e:
        logger.info("Graceful removal of %s failed, forcing: %s", path, e)

    try:
        run_git(repo_root, "worktree", "remove", "--force", "--", str(path))
        return
    except GitCommandError as e:
        logger.warning("Failed to force-remove worktree %s, deleting directory: %s", path, e)

    if path.exists():
        shutil.rmtree(path)


__all__ = [
    "RegistryEntry",
    "parse_worktree_list",
    "list_registry",
    "prune_worktrees",
    "add_worktree",
    "remove_worktree_dir",
]
