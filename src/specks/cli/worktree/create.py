"""
specks worktree create command.

SUMMARY: Create (or reuse) the isolated worktree for a plan
"""
from __future__ import annotations

import argparse
import sys

from specks.cli import (
    OutputFormatter,
    add_json_flag,
    add_repo_root_flag,
    exit_code_for,
    get_repo_root,
)

SUMMARY = "Create (or reuse) the isolated worktree for a plan"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    parser.add_argument("plan", help="Plan document, e.g. .specks/specks-auth.md")
    parser.add_argument(
        "--base",
        dest="base",
        default=None,
        help="Branch to fork from (default: configured base branch)",
    )
    add_json_flag(parser)
    add_repo_root_flag(parser)


def main(args: argparse.Namespace) -> int:
    """Create a plan worktree - delegates to the worktree library."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from specks.core.worktree import create_worktree

    try:
        repo_root = get_repo_root(args)
        result = create_worktree(repo_root, args.plan, getattr(args, "base", None))

        verb = "Reusing existing" if result.reused else "Created"
        formatter.success(
            result.to_dict(),
            f"{verb} worktree for {result.session.speck_path}",
        )
        if not formatter.json_mode:
            formatter.text_kv("Path", result.worktree_path)
            formatter.text_kv("Branch", result.branch_name)
            formatter.text_kv("Base", result.session.base_branch)
            formatter.text_kv("Steps", result.session.total_steps)
            if result.session.beads_root:
                formatter.text_kv("Root bead", result.session.beads_root)
        return 0

    except Exception as e:
        formatter.error(e)
        return exit_code_for(e)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    cli_args = parser.parse_args()
    sys.exit(main(cli_args))
