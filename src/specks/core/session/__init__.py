"""Session records binding a worktree to a plan document."""
from __future__ import annotations

from .models import SCHEMA_VERSION, Session, SessionStatus, StepSummary
from .store import SessionStore, sanitize_session_id

__all__ = [
    "SCHEMA_VERSION",
    "Session",
    "SessionStatus",
    "StepSummary",
    "SessionStore",
    "sanitize_session_id",
]
