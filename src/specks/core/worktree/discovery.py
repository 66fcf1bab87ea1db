"""Live worktree discovery.

git's worktree registry is the only ground truth for which plan worktrees
exist. Session records are joined in for display and metadata, never used
to decide existence.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Dict, List, Optional

from specks.core.config import WorktreeConfig
from specks.core.session import Session, SessionStore
from specks.core.utils.git import list_branches, list_registry, prune_worktrees

from . import naming

logger = logging.getLogger(__name__)


@dataclass
class WorktreeRecord:
    """A live plan worktree as reported by git."""

    path: Path
    branch: str
    head: Optional[str] = None
    session: Optional[Session] = None
    namespace: str = naming.DEFAULT_NAMESPACE

    @property
    def session_id(self) -> Optional[str]:
        if self.session is not None:
            return self.session.session_id
        return naming.session_id_for(self.path, self.namespace)

    @property
    def created_at(self) -> Optional[str]:
        if self.session is not None:
            return self.session.created_at
        return naming.extract_timestamp(self.branch)

    def to_dict(self) -> Dict[str, object]:
        return {
            "branch": self.branch,
            "path": str(self.path),
            "head": self.head,
            "session_id": self.session_id,
            "created_at": self.created_at,
            "speck_path": self.session.speck_path if self.session else None,
            "status": self.session.status.value if self.session else None,
            "total_steps": self.session.total_steps if self.session else None,
            "steps_completed": len(self.session.steps_completed) if self.session else None,
        }


def _config(repo_root: Path, config: Optional[WorktreeConfig]) -> WorktreeConfig:
    return config if config is not None else WorktreeConfig(repo_root)


def list_live(repo_root: Path, *, config: Optional[WorktreeConfig] = None) -> List[WorktreeRecord]:
    """Prune the registry, then return every live worktree on a namespaced branch."""
    cfg = _config(repo_root, config)
    prune_worktrees(repo_root)

    namespace = f"{cfg.branch_namespace}/"
    primary = Path(repo_root).resolve()
    records: List[WorktreeRecord] = []
    for entry in list_registry(repo_root):
        if not entry.branch or not entry.branch.startswith(namespace):
            continue
        path = entry.path.resolve()
        if path == primary:
            continue
        if not path.is_dir():
            logger.debug("Skipping worktree %s: directory is gone", path)
            continue
        records.append(
            WorktreeRecord(
                path=path, branch=entry.branch, head=entry.head, namespace=cfg.branch_namespace
            )
        )
    return records


def _sessions_by_path(store: SessionStore) -> Dict[Path, Session]:
    by_path: Dict[Path, Session] = {}
    for session_id in store.list_ids():
        session = store.load_optional(session_id)
        if session is not None:
            by_path[Path(session.worktree_path).resolve()] = session
    return by_path


def list_with_sessions(
    repo_root: Path, *, config: Optional[WorktreeConfig] = None
) -> List[WorktreeRecord]:
    """Live worktrees joined with their session records by worktree path."""
    cfg = _config(repo_root, config)
    records = list_live(repo_root, config=cfg)
    sessions = _sessions_by_path(SessionStore(cfg))
    for record in records:
        record.session = sessions.get(record.path)
    return records


def find_for_plan(
    repo_root: Path,
    plan_path: PurePath | str,
    *,
    config: Optional[WorktreeConfig] = None,
    with_sessions: bool = True,
) -> List[WorktreeRecord]:
    """Live worktrees in a plan's naming scope, newest first."""
    cfg = _config(repo_root, config)
    slug = naming.derive_slug(plan_path, cfg.plan_prefix)
    records = (
        list_with_sessions(repo_root, config=cfg)
        if with_sessions
        else list_live(repo_root, config=cfg)
    )
    matching = [
        r for r in records if naming.branch_matches_slug(r.branch, slug, cfg.branch_namespace)
    ]
    matching.sort(key=lambda r: naming.extract_timestamp(r.branch) or "", reverse=True)
    return matching


def list_specks_branches(repo_root: Path, *, config: Optional[WorktreeConfig] = None) -> List[str]:
    """Local branches under the tool's namespace, with or without a worktree."""
    cfg = _config(repo_root, config)
    return list_branches(repo_root, f"{cfg.branch_namespace}/*")


__all__ = [
    "WorktreeRecord",
    "list_live",
    "list_with_sessions",
    "find_for_plan",
    "list_specks_branches",
]
