"""
specks worktree cleanup command.

SUMMARY: Remove merged, orphaned or stale plan worktrees and branches
"""
from __future__ import annotations

import argparse
import sys

from specks.cli import (
    OutputFormatter,
    add_dry_run_flag,
    add_json_flag,
    add_repo_root_flag,
    exit_code_for,
    get_repo_root,
)

SUMMARY = "Remove merged, orphaned or stale plan worktrees and branches"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    modes = parser.add_mutually_exclusive_group()
    modes.add_argument(
        "--merged",
        dest="mode",
        action="store_const",
        const="merged",
        help="Worktrees whose branch is merged (default)",
    )
    modes.add_argument(
        "--orphaned",
        dest="mode",
        action="store_const",
        const="orphaned",
        help="Worktrees with no pull request",
    )
    modes.add_argument(
        "--stale",
        dest="mode",
        action="store_const",
        const="stale",
        help="Plan branches with no worktree",
    )
    modes.add_argument(
        "--all",
        dest="mode",
        action="store_const",
        const="all",
        help="Everything above",
    )
    parser.set_defaults(mode="merged")
    add_dry_run_flag(parser)
    add_json_flag(parser)
    add_repo_root_flag(parser)


def _print_section(formatter: OutputFormatter, title: str, items: list) -> None:
    if items:
        formatter.text(title)
        for item in items:
            formatter.text(f"  - {item}")


def main(args: argparse.Namespace) -> int:
    """Classify and clean up plan worktrees - delegates to the worktree library."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from specks.core.worktree import cleanup_worktrees

    try:
        repo_root = get_repo_root(args)
        dry_run = bool(getattr(args, "dry_run", False))
        result = cleanup_worktrees(repo_root, getattr(args, "mode", None) or "merged", dry_run)

        if formatter.json_mode:
            formatter.success(result.to_dict(), "")
            return 0

        prefix = "Would remove" if dry_run else "Removed"
        _print_section(formatter, f"{prefix} merged worktrees:", result.merged)
        _print_section(formatter, f"{prefix} orphaned worktrees:", result.orphaned)
        _print_section(formatter, f"{prefix} stale branches:", result.stale_branches)
        _print_section(formatter, f"{prefix} orphaned sessions:", result.orphaned_sessions)
        _print_section(
            formatter, "Skipped:", [f"{branch} ({reason})" for branch, reason in result.skipped]
        )
        if not any(
            (result.merged, result.orphaned, result.stale_branches, result.orphaned_sessions, result.skipped)
        ):
            formatter.text("Nothing to clean up.")
        return 0

    except Exception as e:
        formatter.error(e)
        return exit_code_for(e)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    cli_args = parser.parse_args()
    sys.exit(main(cli_args))
