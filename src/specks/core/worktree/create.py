"""Transactional, idempotent worktree creation for a plan document.

Preconditions are checked before anything is touched. Every mutating step
then runs inside a :class:`Transaction` so a failure part way through
leaves no branch, worktree directory or session record behind.
"""
from __future__ import annotations

import dataclasses
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from specks.core.config import WorktreeConfig
from specks.core.exceptions import (
    BaseBranchNotFoundError,
    NotARepositoryError,
    WorktreeCreateError,
    WorktreeExistsError,
)
from specks.core.collaborators import SyncResult, run_init, run_sync
from specks.core.plan import require_steps, resolve_plan_path
from specks.core.session import Session, SessionStatus, SessionStore
from specks.core.utils.git import (
    add_worktree,
    branch_exists,
    delete_branch,
    ensure_git_version,
    ensure_repository,
    get_repo_root,
    git_ok,
    prune_worktrees,
    run_git,
)
from specks.core.utils.time import BRANCH_TIMESTAMP_FORMAT, utc_now, utc_timestamp

from . import naming
from .discovery import WorktreeRecord, find_for_plan
from .transaction import Transaction, TransactionStepError

logger = logging.getLogger(__name__)

# Written into the worktrees root so the primary checkout never reports
# nested worktrees or session records as untracked files.
_ROOT_GITIGNORE = "*\n"


@dataclass
class CreateResult:
    worktree_path: Path
    branch_name: str
    slug: str
    session: Session
    reused: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "worktree_path": str(self.worktree_path),
            "branch_name": self.branch_name,
            "base_branch": self.session.base_branch,
            "speck_path": self.session.speck_path,
            "session_id": self.session.session_id,
            "total_steps": self.session.total_steps,
            "reused": self.reused,
        }
        if self.session.bead_mapping:
            data["bead_mapping"] = dict(self.session.bead_mapping)
        if self.session.beads_root:
            data["root_bead_id"] = self.session.beads_root
        return data


def _check_preconditions(repo_root: Path, cfg: WorktreeConfig, base: str) -> Path:
    if not Path(repo_root).is_dir():
        raise NotARepositoryError(f"Not a git repository: {repo_root} (directory does not exist)")
    ensure_git_version(repo_root, cfg.min_git_version)
    root = ensure_repository(repo_root)
    top = get_repo_root(root)
    if top != root:
        raise NotARepositoryError(
            f"{root} is inside a git work tree but is not its top level ({top})",
            context={"repo_root": str(root), "toplevel": str(top)},
        )
    if not branch_exists(root, base):
        raise BaseBranchNotFoundError(
            f"Base branch '{base}' does not exist", context={"base_branch": base}
        )
    return root


def _created_at_from_branch(branch: str) -> str:
    stamp = naming.extract_timestamp(branch)
    if stamp is None:
        return utc_timestamp()
    parsed = datetime.strptime(stamp, BRANCH_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    return utc_timestamp(parsed)


def _reuse(
    record: WorktreeRecord, *, plan_rel: str, slug: str, base: str, total_steps: int
) -> CreateResult:
    """Return an existing worktree as-is. Nothing is written."""
    if record.session is not None:
        session = dataclasses.replace(record.session, reused=True)
    else:
        now = utc_timestamp()
        session = Session(
            session_id=record.session_id or naming.worktree_dir_name(record.branch),
            speck_path=plan_rel,
            speck_slug=slug,
            branch_name=record.branch,
            base_branch=base,
            worktree_path=str(record.path),
            created_at=_created_at_from_branch(record.branch),
            last_updated_at=now,
            total_steps=total_steps,
            reused=True,
        )
    logger.info("Reusing worktree %s for %s", record.path, plan_rel)
    return CreateResult(
        worktree_path=record.path,
        branch_name=record.branch,
        slug=slug,
        session=session,
        reused=True,
    )


class _RootLayout:
    """Create the worktrees root on demand; undo only what was created.

    Bookkeeping directories under the root (sessions, artifacts) that did
    not exist beforehand are removed on undo once empty, since later steps
    may create them implicitly.
    """

    def __init__(self, root: Path, bookkeeping: Sequence[Path] = ()) -> None:
        self.root = root
        self._created_dir = False
        self._created_ignore = False
        self._bookkeeping = list(bookkeeping)
        self._absent: List[Path] = []

    def ensure(self) -> None:
        self._absent = [d for d in self._bookkeeping if not d.exists()]
        if not self.root.exists():
            self.root.mkdir(parents=True)
            self._created_dir = True
        ignore = self.root / ".gitignore"
        if not ignore.exists():
            ignore.write_text(_ROOT_GITIGNORE, encoding="utf-8")
            self._created_ignore = True

    def undo(self) -> None:
        for directory in self._absent:
            if directory.is_dir() and not any(directory.iterdir()):
                directory.rmdir()
        ignore = self.root / ".gitignore"
        if self._created_ignore and ignore.exists():
            ignore.unlink()
        if self._created_dir and self.root.is_dir() and not any(self.root.iterdir()):
            self.root.rmdir()


def _discard_worktree(repo_root: Path, path: Path) -> None:
    """Compensation for ``git worktree add``; tolerates a half-made worktree."""
    if path.exists():
        run_git(repo_root, "worktree", "remove", "--force", "--", str(path), check=False)
    if path.exists():
        shutil.rmtree(path)
    prune_worktrees(repo_root)


def _commit_infrastructure(worktree: Path, cfg: WorktreeConfig, plan_rel: str, slug: str) -> bool:
    """Stage infrastructure directories and the plan; commit when anything changed."""
    candidates: List[str] = [p.rstrip("/") for p in cfg.infrastructure_prefixes]
    candidates.append(plan_rel)
    paths = [p for p in candidates if (worktree / p).exists()]
    if not paths:
        return False
    run_git(worktree, "add", "-A", "--", *paths)
    if git_ok(worktree, "diff", "--cached", "--quiet"):
        logger.debug("Nothing to commit after sync in %s", worktree)
        return False
    message = cfg.commit_message_template.format(slug=slug)
    run_git(worktree, "commit", "-m", message)
    return True


def create_worktree(
    repo_root: Path | str,
    plan_path: Path | str,
    base_branch: Optional[str] = None,
    *,
    config: Optional[WorktreeConfig] = None,
    now: Optional[datetime] = None,
) -> CreateResult:
    """Create (or reuse) the isolated worktree for ``plan_path``.

    Args:
        repo_root: Top level of the repository's primary checkout.
        plan_path: Plan document, absolute or relative to ``repo_root``.
        base_branch: Branch to fork from; defaults to the configured base.
        config: Pre-loaded worktree configuration.
        now: Creation time, for deterministic branch names.

    Returns:
        CreateResult with ``reused=True`` when a live worktree already
        existed for the plan.

    Raises:
        GitVersionError, NotARepositoryError, BaseBranchNotFoundError,
        PlanNotFoundError, PlanValidationError: Preconditions, nothing mutated.
        WorktreeExistsError: The target directory is already on disk.
        WorktreeCreateError: A creation step failed and was rolled back.
    """
    cfg = config if config is not None else WorktreeConfig(Path(repo_root))
    base = base_branch or cfg.base_branch
    root = _check_preconditions(Path(repo_root), cfg, base)

    plan_abs, plan_rel = resolve_plan_path(root, plan_path)
    anchors = require_steps(plan_abs)
    slug = naming.derive_slug(plan_rel, cfg.plan_prefix)

    existing = find_for_plan(root, plan_rel, config=cfg)
    if existing:
        return _reuse(existing[0], plan_rel=plan_rel, slug=slug, base=base, total_steps=len(anchors))

    moment = now or utc_now()
    branch = naming.generate_branch_name(slug, moment, cfg.branch_namespace)
    path = naming.worktree_path_for(cfg.worktrees_root, branch)
    session_id = naming.session_id_for(path, cfg.branch_namespace) or path.name

    if path.exists():
        raise WorktreeExistsError(
            f"Worktree directory already exists: {path}", context={"worktree_path": str(path)}
        )
    if branch_exists(root, branch):
        raise WorktreeExistsError(
            f"Branch already exists without a worktree: {branch}", context={"branch": branch}
        )

    store = SessionStore(cfg)
    layout = _RootLayout(cfg.worktrees_root, (cfg.sessions_dir, cfg.artifacts_dir))
    sync_result: Dict[str, Optional[SyncResult]] = {"value": None}

    def _sync() -> None:
        sync_result["value"] = run_sync(cfg.sync_command, plan=plan_rel, worktree=path)

    def _save_session() -> Session:
        stamp = utc_timestamp(moment)
        synced = sync_result["value"]
        session = Session(
            session_id=session_id,
            speck_path=plan_rel,
            speck_slug=slug,
            branch_name=branch,
            base_branch=base,
            worktree_path=str(path),
            created_at=stamp,
            last_updated_at=stamp,
            status=SessionStatus.PENDING,
            total_steps=len(anchors),
            beads_root=synced.root_bead_id if synced else None,
            bead_mapping=dict(synced.bead_mapping) if synced else {},
        )
        store.save(session)
        return session

    logger.info("Creating worktree %s on %s from %s", path, branch, base)
    try:
        with Transaction(f"create {slug}") as tx:
            tx.run("layout", layout.ensure, compensate=layout.undo, partial=True)
            tx.run(
                "branch",
                lambda: run_git(root, "branch", branch, base),
                compensate=lambda: delete_branch(root, branch),
            )
            tx.run(
                "worktree",
                lambda: add_worktree(root, path, branch),
                compensate=lambda: _discard_worktree(root, path),
                partial=True,
            )
            tx.run("init", lambda: run_init(cfg.init_command, plan=plan_rel, worktree=path))
            tx.run("sync", _sync)
            tx.run("commit", lambda: _commit_infrastructure(path, cfg, plan_rel, slug))
            session = tx.run(
                "session",
                _save_session,
                compensate=lambda: store.delete(session_id),
                partial=True,
            )
            tx.commit()
    except TransactionStepError as e:
        raise WorktreeCreateError(
            f"Failed to create worktree for {plan_rel} at step '{e.step}': {e.error}",
            step=e.step,
            context={"plan": plan_rel, "branch": branch, "worktree_path": str(path)},
        ) from e.error

    return CreateResult(worktree_path=path, branch_name=branch, slug=slug, session=session)


__all__ = ["CreateResult", "create_worktree"]
