"""
specks worktree list command.

SUMMARY: List live plan worktrees
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

SUMMARY = "List live plan worktrees"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    add_json_flag(parser)
    add_repo_root_flag(parser)


def main(args: argparse.Namespace) -> int:
    """List plan worktrees from git's registry, joined with their sessions."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from specks.core.utils.git import ensure_repository
    from specks.core.worktree import list_with_sessions

    try:
        repo_root = ensure_repository(get_repo_root(args))
        records = list_with_sessions(repo_root)

        if formatter.json_mode:
            formatter.success({"worktrees": [r.to_dict() for r in records]}, "")
            return 0

        if not records:
            formatter.text("No plan worktrees.")
            return 0
        for record in records:
            formatter.text(record.branch)
            formatter.text_kv("Path", record.path)
            if record.session is not None:
                formatter.text_kv("Plan", record.session.speck_path)
                formatter.text_kv(
                    "Progress",
                    f"{len(record.session.steps_completed)}/{record.session.total_steps} "
                    f"({record.session.status.value})",
                )
        return 0

    except Exception as e:
        formatter.error(e)
        return exit_code_for(e)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    cli_args = parser.parse_args()
    sys.exit(main(cli_args))
