"""Domain-specific configuration for CLI logging."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class LoggingConfig(BaseDomainConfig):
    """Typed accessor for the ``logging`` config section."""

    def _config_section(self) -> str:
        return "logging"

    @cached_property
    def level(self) -> str:
        return str(self.section.get("level", "WARNING")).upper()

    @cached_property
    def format(self) -> str:
        return str(self.section.get("format", "%(levelname)s %(name)s: %(message)s"))


__all__ = ["LoggingConfig"]
