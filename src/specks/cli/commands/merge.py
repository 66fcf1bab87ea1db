"""
specks merge command.

SUMMARY: Merge a plan's worktree branch into the primary branch and clean up
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

SUMMARY = "Merge a plan's worktree branch into the primary branch and clean up"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    parser.add_argument("plan", help="Plan document whose worktree is merged")
    add_dry_run_flag(parser)
    add_json_flag(parser)
    add_repo_root_flag(parser)


def _print_dry_run(formatter: OutputFormatter, outcome) -> None:
    formatter.text(f"Dry run ({outcome.mode.value} merge of {outcome.branch_name}):")
    for path in outcome.would_commit or []:
        formatter.text(f"  would commit  {path}")
    for path in outcome.would_discard or []:
        formatter.text(f"  would discard {path}")
    if outcome.would_merge_pr:
        formatter.text(f"  would merge PR {outcome.would_merge_pr}")
    if outcome.would_cleanup_worktree:
        formatter.text(f"  would remove  {outcome.would_cleanup_worktree}")


def main(args: argparse.Namespace) -> int:
    """Merge a plan worktree - delegates to the merge engine."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from specks.core.exceptions import MergeConflictError
    from specks.core.worktree import merge_plan

    try:
        repo_root = get_repo_root(args)
        outcome = merge_plan(repo_root, args.plan, bool(getattr(args, "dry_run", False)))

        if formatter.json_mode:
            formatter.success(outcome.to_dict(), "")
            return 0
        if outcome.dry_run:
            _print_dry_run(formatter, outcome)
            return 0

        formatter.text(f"Merged {outcome.branch_name} ({outcome.mode.value})")
        if outcome.pr_url:
            formatter.text_kv("Pull request", outcome.pr_url)
        if outcome.squash_commit:
            formatter.text_kv("Commit", outcome.squash_commit)
        if outcome.infrastructure_committed:
            formatter.text_kv("Infrastructure committed", ", ".join(outcome.infrastructure_files))
        if outcome.discarded_files:
            formatter.text_kv("Discarded", ", ".join(outcome.discarded_files))
        formatter.text_kv("Worktree removed", outcome.worktree_path)
        return 0

    except MergeConflictError as e:
        formatter.error(e)
        if not formatter.json_mode:
            print("Resolve these conflicts in the worktree, then merge again:", file=sys.stderr)
            for path in e.conflicts:
                print(f"  {path}", file=sys.stderr)
        return exit_code_for(e)
    except Exception as e:
        formatter.error(e)
        return exit_code_for(e)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    cli_args = parser.parse_args()
    sys.exit(main(cli_args))
