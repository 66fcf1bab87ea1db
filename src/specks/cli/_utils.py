"""Shared CLI utility functions."""
from __future__ import annotations

import argparse
from pathlib import Path

from specks.core.exceptions import SpecksError
from specks.core.utils.git import get_repo_root as _git_toplevel


def get_repo_root(args: argparse.Namespace) -> Path:
    """Get repository root from args or auto-detect.

    ``--repo-root`` is taken as given (resolved); without it the top level
    of the work tree containing the current directory is used.

    Raises:
        NotARepositoryError: When auto-detection finds no work tree.
    """
    explicit = getattr(args, "repo_root", None)
    if explicit:
        return Path(explicit).resolve()
    return _git_toplevel(Path.cwd())


def exit_code_for(error: BaseException) -> int:
    """Process exit code for an exception raised by a command."""
    if isinstance(error, SpecksError):
        return error.exit_code
    return 1


__all__ = ["get_repo_root", "exit_code_for"]
