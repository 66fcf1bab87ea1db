"""Classify plan worktrees and branches for cleanup, then remove them.

Classification is a single code path shared by dry runs and live runs, so
a dry run reports exactly what a live run with the same inputs removes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from specks.core.config import WorktreeConfig
from specks.core.exceptions import GitCommandError
from specks.core.session import SessionStatus, SessionStore
from specks.core.utils.gh import PrState, get_pr_state
from specks.core.utils.git import (
    current_branch,
    delete_branch,
    ensure_repository,
    is_ancestor,
    prune_worktrees,
)

from .discovery import WorktreeRecord, list_specks_branches, list_with_sessions
from .remove import teardown_worktree

logger = logging.getLogger(__name__)

PrChecker = Callable[[str], PrState]


class CleanupMode(str, Enum):
    MERGED = "merged"
    ORPHANED = "orphaned"
    STALE = "stale"
    ALL = "all"

    def selects(self, disposition: "Disposition") -> bool:
        if disposition is Disposition.SKIPPED:
            return True
        return self is CleanupMode.ALL or self.value == disposition.value


class Disposition(str, Enum):
    MERGED = "merged"
    ORPHANED = "orphaned"
    STALE = "stale"
    SKIPPED = "skipped"


@dataclass
class Classification:
    branch: str
    disposition: Disposition
    reason: Optional[str] = None
    record: Optional[WorktreeRecord] = None


@dataclass
class CleanupResult:
    merged: List[str] = field(default_factory=list)
    orphaned: List[str] = field(default_factory=list)
    stale_branches: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    orphaned_sessions: List[str] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "merged": list(self.merged),
            "orphaned": list(self.orphaned),
            "stale_branches": list(self.stale_branches),
            "skipped": [[branch, reason] for branch, reason in self.skipped],
            "orphaned_sessions": list(self.orphaned_sessions),
            "dry_run": self.dry_run,
        }


def classify_worktree(record: WorktreeRecord, pr_state: PrState, *, merged_into_base: bool) -> Classification:
    """Classify one live worktree. The first matching rule wins.

    1. An open PR always protects the worktree.
    2. A session marked in progress is left alone.
    3. A branch that never had a PR is orphaned.
    4. A merged PR, or a branch already contained in its base, is merged.
    5. PR state unknown (gh missing or failing) and not merged: orphaned.
    6. Anything else (a closed, unmerged PR) is kept.
    """
    branch = record.branch
    if pr_state is PrState.OPEN:
        return Classification(branch, Disposition.SKIPPED, "open PR", record)
    if record.session is not None and record.session.status is SessionStatus.IN_PROGRESS:
        return Classification(branch, Disposition.SKIPPED, "in progress", record)
    if pr_state is PrState.NOT_FOUND:
        return Classification(branch, Disposition.ORPHANED, None, record)
    if pr_state is PrState.MERGED or merged_into_base:
        return Classification(branch, Disposition.MERGED, None, record)
    if pr_state is PrState.UNKNOWN:
        return Classification(branch, Disposition.ORPHANED, None, record)
    return Classification(branch, Disposition.SKIPPED, "closed PR", record)


def classify_branch(branch: str, pr_state: PrState) -> Classification:
    """Classify a namespaced branch that has no live worktree."""
    if pr_state is PrState.OPEN:
        return Classification(branch, Disposition.SKIPPED, "open PR")
    return Classification(branch, Disposition.STALE)


def classify_all(
    repo_root: Path,
    *,
    config: WorktreeConfig,
    pr_checker: PrChecker,
) -> Tuple[List[Classification], List[WorktreeRecord]]:
    """Classify every live worktree and every worktree-less namespaced branch."""
    records = list_with_sessions(repo_root, config=config)
    results: List[Classification] = []

    for record in records:
        base = record.session.base_branch if record.session else config.base_branch
        results.append(
            classify_worktree(
                record,
                pr_checker(record.branch),
                merged_into_base=is_ancestor(repo_root, record.branch, base),
            )
        )

    live_branches = {r.branch for r in records}
    checked_out = current_branch(repo_root)
    for branch in list_specks_branches(repo_root, config=config):
        if branch in live_branches:
            continue
        if branch == checked_out:
            results.append(Classification(branch, Disposition.SKIPPED, "checked out"))
            continue
        results.append(classify_branch(branch, pr_checker(branch)))
    return results, records


def _orphaned_session_ids(store: SessionStore, records: List[WorktreeRecord]) -> List[str]:
    live: Set[str] = set()
    for record in records:
        if record.session is not None:
            live.add(record.session.session_id)
        derived = record.session_id
        if derived:
            live.add(derived)
    return [sid for sid in store.list_ids() if sid not in live]


def cleanup_worktrees(
    repo_root: Path | str,
    mode: CleanupMode | str,
    dry_run: bool = False,
    *,
    config: Optional[WorktreeConfig] = None,
    pr_checker: Optional[PrChecker] = None,
) -> CleanupResult:
    """Remove worktrees and branches selected by ``mode``.

    Args:
        repo_root: Repository primary checkout.
        mode: Which classifications to act on; ``all`` selects every one.
        dry_run: Report without changing anything.
        config: Pre-loaded worktree configuration.
        pr_checker: ``branch -> PrState``; defaults to asking ``gh``.
    """
    root = ensure_repository(repo_root)
    cfg = config if config is not None else WorktreeConfig(root)
    mode = CleanupMode(mode)
    checker: PrChecker = pr_checker or (lambda branch: get_pr_state(root, branch))
    store = SessionStore(cfg)

    classifications, records = classify_all(root, config=cfg, pr_checker=checker)
    result = CleanupResult(
        orphaned_sessions=_orphaned_session_ids(store, records), dry_run=dry_run
    )

    for item in classifications:
        if not mode.selects(item.disposition):
            continue
        if item.disposition is Disposition.SKIPPED:
            result.skipped.append((item.branch, item.reason or ""))
            continue

        if not dry_run:
            try:
                _apply(root, item, store)
            except (GitCommandError, OSError) as e:
                logger.warning("Failed to clean up %s: %s", item.branch, e)
                result.skipped.append((item.branch, f"removal failed: {e}"))
                continue

        if item.disposition is Disposition.MERGED:
            result.merged.append(item.branch)
        elif item.disposition is Disposition.ORPHANED:
            result.orphaned.append(item.branch)
        else:
            result.stale_branches.append(item.branch)

    if not dry_run:
        for session_id in result.orphaned_sessions:
            logger.info("Deleting orphaned session %s", session_id)
            store.delete(session_id)
        prune_worktrees(root)

    return result


def _apply(repo_root: Path, item: Classification, store: SessionStore) -> None:
    if item.record is not None:
        teardown_worktree(repo_root, item.record, store)
    else:
        logger.info("Deleting stale branch %s", item.branch)
        delete_branch(repo_root, item.branch)


__all__ = [
    "CleanupMode",
    "CleanupResult",
    "Classification",
    "Disposition",
    "classify_worktree",
    "classify_branch",
    "classify_all",
    "cleanup_worktrees",
]
