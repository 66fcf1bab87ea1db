"""Subprocess helpers for git/gh and collaborator commands.

This module is the single place specks spawns external processes:
- Every call takes an explicit ``cwd`` (the repository or worktree root)
- Output is always captured as text
- No shell=True (argv lists only)
- Failures surface as :class:`GitCommandError` when ``check=True``
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from specks.core.exceptions import GitCommandError

logger = logging.getLogger(__name__)


def _flatten_cmd(cmd: Any) -> List[str]:
    if isinstance(cmd, (list, tuple)):
        return [str(p) for p in cmd]
    return shlex.split(str(cmd))


def format_cmd(cmd: Sequence[str]) -> str:
    """Render argv for log and error messages."""
    return " ".join(shlex.quote(str(p)) for p in cmd)


def run_command(
    cmd: Sequence[str] | str,
    *,
    cwd: Path | str,
    check: bool = False,
    env: Optional[Mapping[str, str]] = None,
    input: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """Run ``cmd`` in ``cwd`` and capture its output.

    Args:
        cmd: Command argv (a string is split with shlex).
        cwd: Working directory for the child process. Required; the
            parent process directory is never used implicitly.
        check: Raise :class:`GitCommandError` on non-zero exit.
        env: Optional full environment for the child.
        input: Optional text fed to stdin.

    Returns:
        CompletedProcess with text ``stdout``/``stderr``.

    Raises:
        GitCommandError: When ``check`` is set and the command fails.
        FileNotFoundError: When the executable does not exist.
    """
    argv = _flatten_cmd(cmd)
    logger.debug("run: %s (cwd=%s)", format_cmd(argv), cwd)
    result = subprocess.run(
        argv,
        cwd=str(cwd),
        env=dict(env) if env is not None else None,
        input=input,
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        logger.debug(
            "exit %s: %s: %s", result.returncode, format_cmd(argv), (result.stderr or "").strip()
        )
        if check:
            detail = (result.stderr or "").strip() or (result.stdout or "").strip()
            raise GitCommandError(
                f"{format_cmd(argv)} failed (exit {result.returncode}): {detail}",
                argv=argv,
                returncode=result.returncode,
                stderr=result.stderr or "",
            )
    return result


__all__ = ["run_command", "format_cmd"]
