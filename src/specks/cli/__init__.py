"""
specks CLI package.

Provides the command-line interface with auto-discovery of commands
from subfolders (worktree/) and top-level commands (commands/).

Framework utilities for building CLI commands:
- _output: Output formatting (JSON/text modes)
- _args: Common argument registration helpers
- _utils: Shared CLI utilities
"""
from ._output import OutputFormatter
from ._args import (
    add_dry_run_flag,
    add_force_flag,
    add_json_flag,
    add_repo_root_flag,
)
from ._utils import exit_code_for, get_repo_root

__all__ = [
    # Output formatting
    "OutputFormatter",
    # Argument helpers
    "add_json_flag",
    "add_repo_root_flag",
    "add_force_flag",
    "add_dry_run_flag",
    # Utilities
    "get_repo_root",
    "exit_code_for",
]
