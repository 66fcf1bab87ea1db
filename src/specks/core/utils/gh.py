"""GitHub CLI (``gh``) queries for pull-request state.

gh is optional: a missing binary, missing auth, or a repository without a
GitHub remote all degrade to :attr:`PrState.UNKNOWN` instead of failing.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from specks.core.utils.subprocess import run_command

logger = logging.getLogger(__name__)

NO_PR_MARKER = "no pull requests found"


class PrState(str, Enum):
    MERGED = "merged"
    OPEN = "open"
    CLOSED = "closed"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PullRequest:
    number: Optional[int]
    url: Optional[str]
    state: PrState


def _view_pr(repo_root: Path, branch: str, fields: str) -> tuple[PrState, Dict[str, Any]]:
    try:
        result = run_command(["gh", "pr", "view", branch, "--json", fields], cwd=repo_root)
    except FileNotFoundError:
        logger.debug("gh not installed; PR state for %s unknown", branch)
        return PrState.UNKNOWN, {}

    if result.returncode != 0:
        if NO_PR_MARKER in (result.stderr or "").lower():
            return PrState.NOT_FOUND, {}
        logger.debug("gh pr view %s failed: %s", branch, (result.stderr or "").strip())
        return PrState.UNKNOWN, {}

    try:
        payload = json.loads(result.stdout or "{}")
    except json.JSONDecodeError:
        logger.debug("gh pr view %s returned non-JSON output", branch)
        return PrState.UNKNOWN, {}

    state = {
        "MERGED": PrState.MERGED,
        "OPEN": PrState.OPEN,
        "CLOSED": PrState.CLOSED,
    }.get(str(payload.get("state", "")).upper(), PrState.UNKNOWN)
    return state, payload


def get_pr_state(repo_root: Path, branch: str) -> PrState:
    """Return the pull-request state for ``branch``."""
    state, _ = _view_pr(repo_root, branch, "state,mergedAt")
    return state


def find_open_pr(repo_root: Path, branch: str) -> Optional[PullRequest]:
    """Return the open pull request for ``branch``, if any."""
    state, payload = _view_pr(repo_root, branch, "state,number,url")
    if state is not PrState.OPEN:
        return None
    number = payload.get("number")
    return PullRequest(
        number=int(number) if number is not None else None,
        url=payload.get("url"),
        state=state,
    )


def merge_pr_squash(repo_root: Path, branch: str) -> None:
    """Squash-merge the pull request for ``branch`` on the host.

    Raises:
        GitCommandError: If gh reports failure.
    """
    run_command(["gh", "pr", "merge", branch, "--squash"], cwd=repo_root, check=True)


__all__ = ["PrState", "PullRequest", "get_pr_state", "find_open_pr", "merge_pr_squash"]
