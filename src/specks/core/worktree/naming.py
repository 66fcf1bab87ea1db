"""Naming rules for plan worktrees. Pure functions, no I/O.

    plan:      .specks/specks-auth.md
    slug:      auth
    branch:    specks/auth-20260210-143022
    directory: specks__auth-20260210-143022
    session:   auth-20260210-143022
"""
from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path, PurePath
from typing import Optional

from specks.core.utils.time import compact_timestamp

DEFAULT_NAMESPACE = "specks"
DEFAULT_PLAN_PREFIX = "specks-"
SANITIZE_FALLBACK = "specks-worktree"

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]")
_TIMESTAMP_SUFFIX_RE = re.compile(r"-(\d{8}-\d{6})$")


def derive_slug(plan_path: PurePath | str, prefix: str = DEFAULT_PLAN_PREFIX) -> str:
    """Plan file stem without the conventional prefix."""
    stem = PurePath(plan_path).stem
    if prefix and stem.startswith(prefix) and len(stem) > len(prefix):
        return stem[len(prefix):]
    return stem


def generate_branch_name(
    slug: str,
    now: Optional[datetime] = None,
    namespace: str = DEFAULT_NAMESPACE,
) -> str:
    """``<namespace>/<slug>-<YYYYMMDD-HHMMSS>`` in UTC."""
    return f"{namespace}/{slug}-{compact_timestamp(now)}"


def sanitize_branch_name(name: str) -> str:
    """Turn a branch name into a directory-safe component.

    Path separators become ``__``, ``:`` and spaces become ``_``, and
    anything outside ``[A-Za-z0-9_-]`` is dropped. Never returns an
    empty string.

        >>> sanitize_branch_name("specks/auth-20260210-143022")
        'specks__auth-20260210-143022'
        >>> sanitize_branch_name("feature:v1.0")
        'feature_v10'
    """
    value = name.replace("/", "__").replace("\\", "__")
    value = value.replace(":", "_").replace(" ", "_")
    value = _UNSAFE_RE.sub("", value)
    return value or SANITIZE_FALLBACK


def worktree_dir_name(branch: str) -> str:
    return sanitize_branch_name(branch)


def worktree_path_for(worktrees_root: Path, branch: str) -> Path:
    return worktrees_root / worktree_dir_name(branch)


def session_id_for(worktree_path: PurePath | str, namespace: str = DEFAULT_NAMESPACE) -> Optional[str]:
    """Session id from a worktree directory: the name minus ``<namespace>__``."""
    name = PurePath(worktree_path).name
    marker = f"{namespace}__"
    if name.startswith(marker) and len(name) > len(marker):
        return name[len(marker):]
    return None


def branch_prefix(slug: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    """Prefix shared by every branch created for ``slug``."""
    return f"{namespace}/{slug}-"


def extract_timestamp(branch: str) -> Optional[str]:
    """Trailing ``YYYYMMDD-HHMMSS`` of a branch or directory name."""
    match = _TIMESTAMP_SUFFIX_RE.search(branch)
    return match.group(1) if match else None


def branch_matches_slug(branch: str, slug: str, namespace: str = DEFAULT_NAMESPACE) -> bool:
    """True when ``branch`` is exactly ``<namespace>/<slug>-<timestamp>``.

    ``specks/auth-v2-20260210-143022`` does not match slug ``auth``.
    """
    prefix = branch_prefix(slug, namespace)
    if not branch.startswith(prefix):
        return False
    return re.fullmatch(r"\d{8}-\d{6}", branch[len(prefix):]) is not None


__all__ = [
    "DEFAULT_NAMESPACE",
    "DEFAULT_PLAN_PREFIX",
    "SANITIZE_FALLBACK",
    "derive_slug",
    "generate_branch_name",
    "sanitize_branch_name",
    "worktree_dir_name",
    "worktree_path_for",
    "session_id_for",
    "branch_prefix",
    "extract_timestamp",
    "branch_matches_slug",
]
