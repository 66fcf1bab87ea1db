"""Worktree lifecycle commands."""
