"""External collaborators run inside a freshly created worktree.

Both commands come from the ``worktrees`` config section as argv lists:

- ``init_command`` prepares the worktree environment (must be idempotent).
- ``sync_command`` pushes plan steps to the issue tracker and prints JSON,
  either ``{"status": "ok", "data": {...}}`` or the bare data object, where
  data holds ``bead_mapping`` and ``root_bead_id``.

An empty command skips the step.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from specks.core.exceptions import GitCommandError, WorktreeError
from specks.core.utils.subprocess import format_cmd, run_command

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    bead_mapping: Dict[str, str] = field(default_factory=dict)
    root_bead_id: Optional[str] = None


def expand_command(template: Sequence[str], *, plan: str, worktree: Path) -> List[str]:
    """Substitute ``{plan}`` and ``{worktree}`` in each argv element."""
    return [part.replace("{plan}", plan).replace("{worktree}", str(worktree)) for part in template]


def _run_in_worktree(argv: List[str], worktree: Path, what: str) -> str:
    try:
        result = run_command(argv, cwd=worktree, check=True)
    except FileNotFoundError as e:
        raise WorktreeError(f"{what} command not found: {argv[0]}") from e
    except GitCommandError as e:
        raise WorktreeError(f"{what} failed: {e.stderr.strip() or e}") from e
    return result.stdout


def run_init(template: Sequence[str], *, plan: str, worktree: Path) -> bool:
    """Run the environment-initialization command. Returns False when skipped."""
    if not template:
        logger.debug("No init command configured; skipping")
        return False
    argv = expand_command(template, plan=plan, worktree=worktree)
    logger.info("Initializing worktree: %s", format_cmd(argv))
    _run_in_worktree(argv, worktree, "init")
    return True


def parse_sync_output(stdout: str) -> SyncResult:
    """Parse the sync command's JSON report.

    Raises:
        WorktreeError: On invalid JSON or a non-ok status.
    """
    if not stdout.strip():
        return SyncResult()
    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise WorktreeError(f"sync output is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise WorktreeError("sync output must be a JSON object")
    if "status" in payload and payload["status"] != "ok":
        raise WorktreeError(f"sync reported status {payload['status']!r}")
    data = payload.get("data", payload) or {}
    mapping = data.get("bead_mapping") or {}
    if not isinstance(mapping, dict):
        raise WorktreeError("sync bead_mapping must be an object")
    root = data.get("root_bead_id")
    return SyncResult(
        bead_mapping={str(k): str(v) for k, v in mapping.items()},
        root_bead_id=str(root) if root is not None else None,
    )


def run_sync(template: Sequence[str], *, plan: str, worktree: Path) -> Optional[SyncResult]:
    """Run the issue-tracker sync command. Returns None when skipped."""
    if not template:
        logger.debug("No sync command configured; skipping")
        return None
    argv = expand_command(template, plan=plan, worktree=worktree)
    logger.info("Syncing issue tracker: %s", format_cmd(argv))
    return parse_sync_output(_run_in_worktree(argv, worktree, "sync"))


__all__ = ["SyncResult", "expand_command", "run_init", "run_sync", "parse_sync_output"]
