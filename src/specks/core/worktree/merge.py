"""Merge a plan worktree back into the primary branch.

Runs from the primary checkout. Pending changes there are reconciled
first: infrastructure files (plan documents, tracker state) are committed,
everything else is discarded. The branch then lands either through its
open pull request (remote mode) or a local squash merge, and the worktree
is torn down.

Conflicts are resolved automatically only when every conflicted path is
infrastructure; a conflict on any other file aborts the merge and puts
the checkout back the way it was.
"""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from specks.core.config import WorktreeConfig
from specks.core.exceptions import (
    GitCommandError,
    MergeConflictError,
    MergeError,
    MergePreconditionError,
    WorktreeNotFoundError,
)
from specks.core.session import SessionStore
from specks.core.utils.gh import PullRequest, find_open_pr, merge_pr_squash
from specks.core.utils.git import (
    current_branch,
    ensure_repository,
    git_ok,
    has_remote,
    head_commit,
    is_linked_worktree,
    prune_worktrees,
    run_git,
    status_entries,
)

from . import naming
from .discovery import WorktreeRecord, find_for_plan
from .remove import teardown_worktree

logger = logging.getLogger(__name__)

INFRA_COMMIT_MESSAGE = "chore: sync infrastructure before merge"

PrLookup = Callable[[str], Optional[PullRequest]]


class MergeMode(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass
class Reconciliation:
    """What the primary checkout needs before a merge."""

    infrastructure: List[str] = field(default_factory=list)
    tracked: List[str] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)

    @property
    def discard(self) -> List[str]:
        return self.tracked + self.untracked


@dataclass
class MergeOutcome:
    mode: MergeMode
    branch_name: str
    worktree_path: Path
    pr_url: Optional[str] = None
    pr_number: Optional[int] = None
    squash_commit: Optional[str] = None
    infrastructure_committed: bool = False
    infrastructure_files: List[str] = field(default_factory=list)
    discarded_files: List[str] = field(default_factory=list)
    worktree_cleaned: bool = False
    dry_run: bool = False
    would_commit: Optional[List[str]] = None
    would_discard: Optional[List[str]] = None
    would_merge_pr: Optional[str] = None
    would_cleanup_worktree: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "mode": self.mode.value,
            "branch_name": self.branch_name,
            "worktree_path": str(self.worktree_path),
            "pr_url": self.pr_url,
            "pr_number": self.pr_number,
            "squash_commit": self.squash_commit,
            "infrastructure_committed": self.infrastructure_committed,
            "infrastructure_files": list(self.infrastructure_files),
            "discarded_files": list(self.discarded_files),
            "worktree_cleaned": self.worktree_cleaned,
            "dry_run": self.dry_run,
        }
        if self.dry_run:
            data.update(
                {
                    "would_commit": list(self.would_commit or []),
                    "would_discard": list(self.would_discard or []),
                    "would_merge_pr": self.would_merge_pr,
                    "would_cleanup_worktree": self.would_cleanup_worktree,
                }
            )
        return data


def _check_primary_checkout(root: Path, cfg: WorktreeConfig) -> None:
    if is_linked_worktree(root):
        raise MergePreconditionError(
            f"{root} is a linked worktree; run merge from the repository's primary checkout",
            context={"repo_root": str(root)},
        )
    branch = current_branch(root)
    if branch != cfg.primary_branch:
        raise MergePreconditionError(
            f"merge must run on '{cfg.primary_branch}' (currently on {branch or 'a detached HEAD'})",
            context={"current_branch": branch, "primary_branch": cfg.primary_branch},
        )


def _select_target(root: Path, plan_path: Path | str, cfg: WorktreeConfig) -> WorktreeRecord:
    matches = find_for_plan(root, plan_path, config=cfg)
    if not matches:
        slug = naming.derive_slug(plan_path, cfg.plan_prefix)
        prefix = naming.branch_prefix(slug, cfg.branch_namespace)
        raise WorktreeNotFoundError(
            f"No worktree found for {plan_path} (searched branches {prefix}*)",
            context={"plan": str(plan_path), "branch_prefix": prefix},
        )
    if len(matches) > 1:
        logger.warning(
            "%d worktrees found for %s; merging the newest (%s)",
            len(matches),
            plan_path,
            matches[0].branch,
        )
    return matches[0]


def plan_reconciliation(root: Path, cfg: WorktreeConfig) -> Reconciliation:
    """Sort the primary checkout's pending changes into commit and discard sets."""
    plan = Reconciliation()
    own_root = cfg.root_dir_name.rstrip("/")
    for entry in status_entries(root):
        # A staged rename also deletes its source; both sides are restored.
        for path in filter(None, (entry.path, entry.orig_path)):
            if path == own_root or path.startswith(own_root + "/"):
                continue
            if cfg.is_infrastructure_path(path):
                plan.infrastructure.append(path)
            elif entry.untracked:
                plan.untracked.append(path)
            else:
                plan.tracked.append(path)
    return plan


def _discard_changes(root: Path, plan: Reconciliation) -> None:
    for path in plan.tracked:
        run_git(root, "reset", "-q", "--", path, check=False)
        if git_ok(root, "cat-file", "-e", f"HEAD:{path}"):
            run_git(root, "checkout", "--", path)
        else:
            target = root / path
            if target.exists():
                target.unlink()
    for path in plan.untracked:
        target = root / path
        if target.is_dir():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()


def _commit_infrastructure(root: Path, paths: List[str]) -> bool:
    if not paths:
        return False
    run_git(root, "add", "-A", "--", *paths)
    result = run_git(root, "commit", "-m", INFRA_COMMIT_MESSAGE, check=False)
    if result.returncode == 0:
        return True
    output = f"{result.stdout}\n{result.stderr}"
    if "nothing to commit" in output or "no changes added to commit" in output:
        return False
    raise MergeError(
        f"Failed to commit infrastructure changes: {result.stderr.strip() or result.stdout.strip()}",
        context={"files": paths},
    )


def reconcile_primary(root: Path, cfg: WorktreeConfig) -> tuple[Reconciliation, bool]:
    """Discard non-infrastructure changes, then commit infrastructure ones."""
    plan = plan_reconciliation(root, cfg)
    if plan.discard:
        logger.info("Discarding %d non-infrastructure change(s) in %s", len(plan.discard), root)
        _discard_changes(root, plan)
    committed = _commit_infrastructure(root, plan.infrastructure)
    return plan, committed


def _git_dir(root: Path) -> Path:
    return (root / run_git(root, "rev-parse", "--git-dir").stdout.strip()).resolve()


def _restore_checkout(root: Path) -> None:
    """Abandon an in-progress squash merge."""
    run_git(root, "reset", "--hard", "HEAD", check=False)
    squash_msg = _git_dir(root) / "SQUASH_MSG"
    if squash_msg.exists():
        squash_msg.unlink()


def _conflicted_paths(root: Path) -> List[str]:
    result = run_git(root, "diff", "--name-only", "--diff-filter=U", check=False)
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def _take_theirs(root: Path, path: str) -> None:
    if git_ok(root, "checkout", "--theirs", "--", path):
        run_git(root, "add", "--", path)
    else:
        # The incoming side deleted the file.
        run_git(root, "rm", "-q", "--", path)


def squash_merge_local(root: Path, branch: str, slug: str, cfg: WorktreeConfig) -> Optional[str]:
    """Squash-merge ``branch`` into the current branch and commit.

    Returns:
        The new commit id, or None when the branch brought no changes.

    Raises:
        MergeConflictError: Conflicts on non-infrastructure files.
        MergeError: Any other merge or commit failure.
    """
    result = run_git(root, "merge", "--squash", branch, check=False)
    if result.returncode != 0:
        conflicts = _conflicted_paths(root)
        if not conflicts:
            _restore_checkout(root)
            detail = result.stderr.strip() or result.stdout.strip()
            raise MergeError(f"git merge --squash {branch} failed: {detail}", context={"branch": branch})
        code_paths = [p for p in conflicts if not cfg.is_infrastructure_path(p)]
        if code_paths:
            _restore_checkout(root)
            raise MergeConflictError(
                f"Merge of {branch} conflicts on {len(code_paths)} file(s): {', '.join(code_paths)}",
                conflicts=code_paths,
            )
        logger.info("Resolving %d infrastructure conflict(s) with the incoming side", len(conflicts))
        for path in conflicts:
            _take_theirs(root, path)

    if git_ok(root, "diff", "--cached", "--quiet"):
        logger.info("%s has no changes to merge", branch)
        _restore_checkout(root)
        return None

    commit = run_git(root, "commit", "-m", f"{slug}: squash merge {branch}", check=False)
    if commit.returncode != 0:
        _restore_checkout(root)
        detail = commit.stderr.strip() or commit.stdout.strip()
        raise MergeError(f"Failed to commit squash merge of {branch}: {detail}", context={"branch": branch})
    return head_commit(root)


def merge_remote(root: Path, branch: str, cfg: WorktreeConfig) -> None:
    """Squash-merge the branch's pull request, then fast-forward the primary branch."""
    try:
        merge_pr_squash(root, branch)
    except (GitCommandError, FileNotFoundError) as e:
        raise MergeError(f"Failed to merge pull request for {branch}: {e}", context={"branch": branch}) from e
    try:
        run_git(root, "pull", "--ff-only", cfg.remote_name, cfg.primary_branch)
    except GitCommandError as e:
        raise MergeError(
            f"Pull request merged but fast-forwarding {cfg.primary_branch} failed: {e}",
            context={"branch": branch},
        ) from e


def merge_plan(
    repo_root: Path | str,
    plan_path: Path | str,
    dry_run: bool = False,
    *,
    config: Optional[WorktreeConfig] = None,
    pr_lookup: Optional[PrLookup] = None,
) -> MergeOutcome:
    """Land the plan's worktree branch on the primary branch and clean up.

    Args:
        repo_root: The repository's primary checkout.
        plan_path: Plan document whose worktree is merged.
        dry_run: Report what would happen without changing anything.
        config: Pre-loaded worktree configuration.
        pr_lookup: ``branch -> PullRequest | None`` for the open pull
            request; defaults to asking ``gh``.

    Raises:
        MergePreconditionError: Not on the primary branch of the primary checkout.
        WorktreeNotFoundError: The plan has no live worktree.
        MergeConflictError: Conflicts on non-infrastructure files.
        MergeError: Any other failure while merging.
    """
    root = ensure_repository(repo_root)
    cfg = config if config is not None else WorktreeConfig(root)
    _check_primary_checkout(root, cfg)

    record = _select_target(root, plan_path, cfg)
    slug = naming.derive_slug(plan_path, cfg.plan_prefix)
    lookup: PrLookup = pr_lookup or (lambda branch: find_open_pr(root, branch))

    pr: Optional[PullRequest] = None
    if has_remote(root, cfg.remote_name):
        pr = lookup(record.branch)
    mode = MergeMode.REMOTE if pr is not None else MergeMode.LOCAL
    logger.info("Merging %s in %s mode", record.branch, mode.value)

    outcome = MergeOutcome(
        mode=mode,
        branch_name=record.branch,
        worktree_path=record.path,
        pr_url=pr.url if pr else None,
        pr_number=pr.number if pr else None,
        dry_run=dry_run,
    )

    if dry_run:
        plan = plan_reconciliation(root, cfg)
        outcome.would_commit = plan.infrastructure
        outcome.would_discard = plan.discard
        outcome.would_merge_pr = pr.url if pr else None
        outcome.would_cleanup_worktree = str(record.path)
        return outcome

    plan, committed = reconcile_primary(root, cfg)
    outcome.infrastructure_committed = committed
    outcome.infrastructure_files = plan.infrastructure
    outcome.discarded_files = plan.discard

    if mode is MergeMode.REMOTE:
        merge_remote(root, record.branch, cfg)
        outcome.squash_commit = head_commit(root)
    else:
        outcome.squash_commit = squash_merge_local(root, record.branch, slug, cfg)

    teardown_worktree(root, record, SessionStore(cfg))
    prune_worktrees(root)
    outcome.worktree_cleaned = True
    return outcome


__all__ = [
    "INFRA_COMMIT_MESSAGE",
    "MergeMode",
    "MergeOutcome",
    "Reconciliation",
    "merge_plan",
    "plan_reconciliation",
    "reconcile_primary",
    "squash_merge_local",
    "merge_remote",
]
