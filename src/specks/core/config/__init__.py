"""Layered YAML configuration for specks."""
from __future__ import annotations

from .base import BaseDomainConfig
from .domains import LoggingConfig, WorktreeConfig
from .manager import ConfigManager

__all__ = ["BaseDomainConfig", "ConfigManager", "LoggingConfig", "WorktreeConfig"]
