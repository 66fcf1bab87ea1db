"""Remove one plan worktree by plan path, branch name or directory."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from specks.core.config import WorktreeConfig
from specks.core.exceptions import (
    AmbiguousTargetError,
    DirtyWorktreeError,
    GitCommandError,
    WorktreeNotFoundError,
)
from specks.core.session import SessionStore
from specks.core.utils.git import (
    delete_branch,
    ensure_repository,
    prune_worktrees,
    remove_worktree_dir,
    status_entries,
)

from . import naming
from .discovery import WorktreeRecord, list_with_sessions

logger = logging.getLogger(__name__)


@dataclass
class RemovedInfo:
    branch: str
    worktree_path: Path
    session_id: Optional[str] = None
    speck_path: Optional[str] = None
    branch_deleted: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch_name": self.branch,
            "worktree_path": str(self.worktree_path),
            "session_id": self.session_id,
            "speck_path": self.speck_path,
            "branch_deleted": self.branch_deleted,
        }


def teardown_worktree(repo_root: Path, record: WorktreeRecord, store: SessionStore) -> bool:
    """Remove a live worktree's directory, branch and session record.

    Directory removal falls back from ``git worktree remove`` to ``--force``
    to deleting the directory. Branch deletion failures are logged only.

    Returns:
        True if the branch was deleted.
    """
    logger.info("Removing worktree %s (%s)", record.path, record.branch)
    remove_worktree_dir(repo_root, record.path)

    branch_deleted = True
    try:
        delete_branch(repo_root, record.branch)
    except GitCommandError as e:
        logger.warning("Failed to delete branch %s: %s", record.branch, e)
        branch_deleted = False

    session_id = record.session_id
    if session_id:
        store.delete(session_id)
    return branch_deleted


def _candidate(record: WorktreeRecord) -> Dict[str, Any]:
    return {
        "branch": record.branch,
        "path": str(record.path),
        "created_at": record.created_at,
    }


def resolve_target(
    repo_root: Path, target: str, *, config: WorktreeConfig
) -> WorktreeRecord:
    """Find the single live worktree ``target`` names.

    A target ending in ``.md`` is treated as a plan path and matched by
    slug; otherwise it must equal a branch name or a worktree directory
    (relative paths are taken from ``repo_root``).

    Raises:
        AmbiguousTargetError: The plan has more than one live worktree.
        WorktreeNotFoundError: Nothing matches.
    """
    records = list_with_sessions(repo_root, config=config)

    if target.endswith(".md"):
        slug = naming.derive_slug(target, config.plan_prefix)
        matches: List[WorktreeRecord] = [
            r for r in records if naming.branch_matches_slug(r.branch, slug, config.branch_namespace)
        ]
        matches.sort(key=lambda r: naming.extract_timestamp(r.branch) or "", reverse=True)
        if len(matches) > 1:
            listing = ", ".join(r.branch for r in matches)
            raise AmbiguousTargetError(
                f"{target} matches {len(matches)} worktrees ({listing}); "
                "remove one by branch name or path",
                candidates=[_candidate(r) for r in matches],
            )
        if matches:
            return matches[0]

    for record in records:
        if record.branch == target:
            return record

    candidate = Path(target)
    if not candidate.is_absolute():
        candidate = repo_root / candidate
    candidate = candidate.resolve()
    for record in records:
        if record.path == candidate:
            return record

    raise WorktreeNotFoundError(f"No worktree found for {target}", context={"target": target})


def remove_worktree(
    repo_root: Path | str,
    target: str,
    force: bool = False,
    *,
    config: Optional[WorktreeConfig] = None,
) -> RemovedInfo:
    """Remove the worktree ``target`` names, with its branch and session.

    Raises:
        AmbiguousTargetError, WorktreeNotFoundError: See :func:`resolve_target`.
        DirtyWorktreeError: Uncommitted changes and ``force`` is False.
    """
    root = ensure_repository(repo_root)
    cfg = config if config is not None else WorktreeConfig(root)
    record = resolve_target(root, target, config=cfg)

    if not force:
        changes = status_entries(record.path)
        if changes:
            raise DirtyWorktreeError(
                f"Worktree {record.path} has {len(changes)} uncommitted change(s); "
                "use --force to remove it anyway",
                context={
                    "worktree_path": str(record.path),
                    "changes": [e.path for e in changes],
                },
            )

    branch_deleted = teardown_worktree(root, record, SessionStore(cfg))
    prune_worktrees(root)
    return RemovedInfo(
        branch=record.branch,
        worktree_path=record.path,
        session_id=record.session_id,
        speck_path=record.session.speck_path if record.session else None,
        branch_deleted=branch_deleted,
    )


__all__ = ["RemovedInfo", "remove_worktree", "resolve_target", "teardown_worktree"]
