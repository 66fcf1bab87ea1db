"""Git repository queries.

Every function takes the repository (or worktree) root explicitly and runs
git with ``cwd`` set to it.
"""
from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from specks.core.exceptions import GitVersionError, NotARepositoryError
from specks.core.utils.subprocess import run_command

_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


def run_git(
    repo_root: Path | str, *args: str, check: bool = True, input: Optional[str] = None
) -> subprocess.CompletedProcess:
    """Run ``git <args>`` inside ``repo_root``."""
    return run_command(["git", *args], cwd=repo_root, check=check, input=input)


def git_ok(repo_root: Path | str, *args: str) -> bool:
    """Run a git query and report whether it exited 0."""
    return run_git(repo_root, *args, check=False).returncode == 0


def git_version(cwd: Path | str) -> Tuple[int, ...]:
    """Return the installed git version as a tuple, e.g. ``(2, 43, 0)``.

    Raises:
        GitVersionError: If git is not installed or its version is unparseable.
    """
    try:
        result = run_command(["git", "--version"], cwd=cwd, check=True)
    except FileNotFoundError as exc:
        raise GitVersionError("git is not installed or not on PATH") from exc
    match = _VERSION_RE.search(result.stdout)
    if not match:
        raise GitVersionError(f"Could not parse git version from: {result.stdout.strip()!r}")
    return tuple(int(p) for p in match.groups() if p is not None)


def ensure_git_version(cwd: Path | str, minimum: Sequence[int]) -> Tuple[int, ...]:
    """Fail with :class:`GitVersionError` when git is older than ``minimum``."""
    version = git_version(cwd)
    if tuple(version[: len(minimum)]) < tuple(minimum):
        have = ".".join(str(p) for p in version)
        need = ".".join(str(p) for p in minimum)
        raise GitVersionError(
            f"git {need} or newer is required for worktree support (found {have})",
            context={"found": have, "required": need},
        )
    return version


def ensure_repository(repo_root: Path | str) -> Path:
    """Return the resolved ``repo_root`` if it is a git working directory.

    Raises:
        NotARepositoryError: If the path does not exist or is not inside a work tree.
    """
    root = Path(repo_root)
    if not root.is_dir():
        raise NotARepositoryError(f"Not a git repository: {root} (directory does not exist)")
    result = run_git(root, "rev-parse", "--is-inside-work-tree", check=False)
    if result.returncode != 0 or result.stdout.strip() != "true":
        raise NotARepositoryError(f"Not a git repository: {root}")
    return root.resolve()


def get_repo_root(start_path: Path | str) -> Path:
    """Return the top level of the work tree containing ``start_path``.

    Raises:
        NotARepositoryError: If ``start_path`` is not inside a git work tree.
    """
    result = run_git(start_path, "rev-parse", "--show-toplevel", check=False)
    if result.returncode != 0 or not result.stdout.strip():
        raise NotARepositoryError(f"Not a git repository: {start_path}")
    return Path(result.stdout.strip()).resolve()


def branch_exists(repo_root: Path | str, branch: str) -> bool:
    return git_ok(repo_root, "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}")


def current_branch(path: Path | str) -> Optional[str]:
    """Return the checked-out branch name, or None when HEAD is detached."""
    result = run_git(path, "symbolic-ref", "--quiet", "--short", "HEAD", check=False)
    name = result.stdout.strip()
    return name or None


def head_commit(path: Path | str) -> str:
    return run_git(path, "rev-parse", "HEAD").stdout.strip()


def is_ancestor(repo_root: Path | str, ancestor: str, descendant: str) -> bool:
    """True when ``ancestor`` is reachable from ``descendant``."""
    return git_ok(repo_root, "merge-base", "--is-ancestor", ancestor, descendant)


def has_remote(repo_root: Path | str, name: str) -> bool:
    result = run_git(repo_root, "remote", check=False)
    return name in result.stdout.split()


def list_branches(repo_root: Path | str, pattern: str) -> List[str]:
    """Local branch names matching a ``git branch --list`` pattern."""
    result = run_git(repo_root, "branch", "--list", pattern)
    branches: List[str] = []
    for raw in result.stdout.splitlines():
        # "* " marks the current branch, "+ " a branch checked out in a worktree.
        name = raw.strip()
        if name.startswith(("* ", "+ ")):
            name = name[2:].strip()
        if name:
            branches.append(name)
    return branches


def delete_branch(repo_root: Path | str, branch: str) -> None:
    run_git(repo_root, "branch", "-D", "--", branch)


def _git_dir_info(path: Path) -> tuple[Path, Path]:
    """Return absolute git dir and common dir for the checkout at ``path``."""
    # Older git prints these relative to ``path``; resolve both the same way.
    git_dir = run_git(path, "rev-parse", "--git-dir").stdout.strip()
    common_dir = run_git(path, "rev-parse", "--git-common-dir").stdout.strip()
    return (path / git_dir).resolve(), (path / common_dir).resolve()


def is_linked_worktree(path: Path | str) -> bool:
    """Return True when ``path`` is a linked worktree (not the primary checkout)."""
    git_dir, common_dir = _git_dir_info(Path(path))
    if git_dir == common_dir:
        return False
    return git_dir.is_relative_to(common_dir / "worktrees")


@dataclass(frozen=True)
class StatusEntry:
    """One ``git status --porcelain`` entry."""

    code: str
    path: str
    orig_path: Optional[str] = None

    @property
    def untracked(self) -> bool:
        return self.code == "??"


def parse_status_z(stdout: str) -> List[StatusEntry]:
    """Parse ``git status --porcelain -z`` output.

    Renames and copies carry their original path as an extra NUL-separated
    field, kept as ``orig_path``.
    """
    entries: List[StatusEntry] = []
    fields = stdout.split("\0")
    i = 0
    while i < len(fields):
        item = fields[i]
        i += 1
        if len(item) < 4:
            continue
        code, path = item[:2], item[3:]
        orig_path = None
        if code[0] in "RC" or code[1] in "RC":
            orig_path = fields[i] if i < len(fields) and fields[i] else None
            i += 1
        entries.append(StatusEntry(code=code, path=path, orig_path=orig_path))
    return entries


def status_entries(path: Path | str) -> List[StatusEntry]:
    """Uncommitted changes in the checkout at ``path`` (untracked files listed individually)."""
    result = run_git(path, "status", "--porcelain", "-z", "--untracked-files=all")
    return parse_status_z(result.stdout)


__all__ = [
    "run_git",
    "git_ok",
    "git_version",
    "ensure_git_version",
    "ensure_repository",
    "get_repo_root",
    "branch_exists",
    "current_branch",
    "head_commit",
    "is_ancestor",
    "has_remote",
    "list_branches",
    "delete_branch",
    "is_linked_worktree",
    "StatusEntry",
    "parse_status_z",
    "status_entries",
]
