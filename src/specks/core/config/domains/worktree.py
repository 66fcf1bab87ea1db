"""Domain-specific configuration for the worktree lifecycle.

Provides cached access to naming, layout, merge and collaborator settings.
"""
from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import List, Tuple

from ..base import BaseDomainConfig


class WorktreeConfig(BaseDomainConfig):
    """Typed accessor for the ``worktrees`` config section."""

    def _config_section(self) -> str:
        return "worktrees"

    @cached_property
    def root_dir_name(self) -> str:
        return str(self.section.get("root_dir", ".specks-worktrees"))

    @cached_property
    def worktrees_root(self) -> Path:
        """Absolute directory holding worktrees, sessions and artifacts."""
        return (self.repo_root / self.root_dir_name).resolve()

    @cached_property
    def sessions_dir(self) -> Path:
        return self.worktrees_root / ".sessions"

    @cached_property
    def artifacts_dir(self) -> Path:
        return self.worktrees_root / ".artifacts"

    @cached_property
    def branch_namespace(self) -> str:
        return str(self.section.get("branch_namespace", "specks"))

    @cached_property
    def plan_prefix(self) -> str:
        return str(self.section.get("plan_prefix", "specks-"))

    @cached_property
    def base_branch(self) -> str:
        return str(self.section.get("base_branch", "main"))

    @cached_property
    def primary_branch(self) -> str:
        return str(self.section.get("primary_branch", "main"))

    @cached_property
    def remote_name(self) -> str:
        return str(self.section.get("remote_name", "origin"))

    @cached_property
    def min_git_version(self) -> Tuple[int, ...]:
        raw = str(self.section.get("min_git_version", "2.15"))
        return tuple(int(p) for p in raw.split(".") if p.isdigit())

    @cached_property
    def infrastructure_prefixes(self) -> Tuple[str, ...]:
        prefixes = self.section.get("infrastructure_prefixes") or [".specks/", ".beads/"]
        return tuple(str(p) for p in prefixes)

    @cached_property
    def init_command(self) -> List[str]:
        return [str(p) for p in (self.section.get("init_command") or [])]

    @cached_property
    def sync_command(self) -> List[str]:
        return [str(p) for p in (self.section.get("sync_command") or [])]

    @cached_property
    def commit_message_template(self) -> str:
        return str(
            self.section.get("commit_message") or "chore: init worktree and sync beads for {slug}"
        )

    def is_infrastructure_path(self, path: str) -> bool:
        """True when ``path`` (repo-relative, POSIX) lies under an infrastructure prefix."""
        normalized = path.replace("\\", "/")
        if normalized.startswith("./"):
            normalized = normalized[2:]
        for prefix in self.infrastructure_prefixes:
            bare = prefix.rstrip("/")
            if normalized == bare or normalized.startswith(bare + "/"):
                return True
        return False


__all__ = ["WorktreeConfig"]
