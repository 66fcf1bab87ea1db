"""
specks worktree remove command.

SUMMARY: Remove one plan worktree with its branch and session
"""
from __future__ import annotations

import argparse
import sys

from specks.cli import (
    OutputFormatter,
    add_force_flag,
    add_json_flag,
    add_repo_root_flag,
    exit_code_for,
    get_repo_root,
)

SUMMARY = "Remove one plan worktree with its branch and session"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    parser.add_argument("target", help="Plan path, branch name or worktree directory")
    add_force_flag(parser, help_text="Remove even with uncommitted changes")
    add_json_flag(parser)
    add_repo_root_flag(parser)


def main(args: argparse.Namespace) -> int:
    """Remove a plan worktree - delegates to the worktree library."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from specks.core.exceptions import AmbiguousTargetError
    from specks.core.worktree import remove_worktree

    try:
        repo_root = get_repo_root(args)
        info = remove_worktree(repo_root, args.target, bool(getattr(args, "force", False)))
        formatter.success(info.to_dict(), f"Removed worktree {info.worktree_path}")
        if not formatter.json_mode and not info.branch_deleted:
            formatter.text(f"  Branch {info.branch} was kept (delete failed)")
        return 0

    except AmbiguousTargetError as e:
        formatter.error(e)
        if not formatter.json_mode:
            for candidate in e.candidates:
                print(
                    f"  {candidate['branch']}  {candidate['path']}  ({candidate.get('created_at') or '?'})",
                    file=sys.stderr,
                )
        return exit_code_for(e)
    except Exception as e:
        formatter.error(e)
        return exit_code_for(e)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    cli_args = parser.parse_args()
    sys.exit(main(cli_args))
