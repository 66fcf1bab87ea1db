"""Git helpers: repository queries and the worktree registry."""
from __future__ import annotations

from .repository import (
    StatusEntry,
    branch_exists,
    current_branch,
    delete_branch,
    ensure_git_version,
    ensure_repository,
    get_repo_root,
    git_ok,
    git_version,
    has_remote,
    head_commit,
    is_ancestor,
    is_linked_worktree,
    list_branches,
    parse_status_z,
    run_git,
    status_entries,
)
from .worktree import (
    RegistryEntry,
    add_worktree,
    list_registry,
    parse_worktree_list,
    prune_worktrees,
    remove_worktree_dir,
)

__all__ = [
    "StatusEntry",
    "branch_exists",
    "current_branch",
    "delete_branch",
    "ensure_git_version",
    "ensure_repository",
    "get_repo_root",
    "git_ok",
    "git_version",
    "has_remote",
    "head_commit",
    "is_ancestor",
    "is_linked_worktree",
    "list_branches",
    "parse_status_z",
    "run_git",
    "status_entries",
    "RegistryEntry",
    "add_worktree",
    "list_registry",
    "parse_worktree_list",
    "prune_worktrees",
    "remove_worktree_dir",
]
