"""Domain-specific configuration accessors."""
from __future__ import annotations

from .logging import LoggingConfig
from .worktree import WorktreeConfig

__all__ = ["LoggingConfig", "WorktreeConfig"]
