"""
specks - plan-driven worktree lifecycle management

specks provisions one isolated git worktree per plan document, tracks the
session bound to it, and cleans up, removes or merges it back when the
work is done.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
