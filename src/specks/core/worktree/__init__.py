"""Worktree lifecycle: create, discover, clean up, remove and merge plan worktrees."""
from __future__ import annotations

from .cleanup import CleanupMode, CleanupResult, cleanup_worktrees
from .create import CreateResult, create_worktree
from .discovery import WorktreeRecord, find_for_plan, list_live, list_specks_branches, list_with_sessions
from .merge import MergeMode, MergeOutcome, merge_plan
from .remove import RemovedInfo, remove_worktree
from .transaction import Transaction, TransactionStepError

__all__ = [
    "CleanupMode",
    "CleanupResult",
    "cleanup_worktrees",
    "CreateResult",
    "create_worktree",
    "WorktreeRecord",
    "find_for_plan",
    "list_live",
    "list_specks_branches",
    "list_with_sessions",
    "MergeMode",
    "MergeOutcome",
    "merge_plan",
    "RemovedInfo",
    "remove_worktree",
    "Transaction",
    "TransactionStepError",
]
