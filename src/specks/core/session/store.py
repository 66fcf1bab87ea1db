"""Session storage and artifact directories.

Layout under the worktrees root:

    .sessions/<session_id>.json
    .artifacts/<session_id>/step-<n>/
"""
from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import List, Optional

from specks.core.config import WorktreeConfig
from specks.core.exceptions import SessionError
from specks.core.schemas import SchemaValidationError, validate_payload
from specks.core.utils.io import ensure_directory, read_json, write_json_atomic
from specks.core.utils.time import utc_timestamp

from .models import Session, SessionStatus, StepSummary

logger = logging.getLogger(__name__)

SESSION_SCHEMA = "session.schema.yaml"
_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def sanitize_session_id(session_id: str) -> str:
    """Reject ids that could escape the sessions directory."""
    if not session_id or not _SESSION_ID_RE.match(session_id):
        raise SessionError(f"Invalid session id: {session_id!r}", session_id=session_id or None)
    return session_id


class SessionStore:
    """Reads and writes session records for one repository."""

    def __init__(self, config: WorktreeConfig) -> None:
        self.config = config

    @property
    def sessions_dir(self) -> Path:
        return self.config.sessions_dir

    @property
    def artifacts_root(self) -> Path:
        return self.config.artifacts_dir

    def path_for(self, session_id: str) -> Path:
        return self.sessions_dir / f"{sanitize_session_id(session_id)}.json"

    def artifacts_dir(self, session_id: str) -> Path:
        return self.artifacts_root / sanitize_session_id(session_id)

    def step_artifacts_dir(self, session_id: str, step: int, *, create: bool = True) -> Path:
        """Directory for one step's artifacts (``step-<n>``)."""
        if step < 0:
            raise SessionError("Step number must be non-negative", session_id=session_id)
        path = self.artifacts_dir(session_id) / f"step-{step}"
        if create:
            ensure_directory(path)
        return path

    def exists(self, session_id: str) -> bool:
        return self.path_for(session_id).exists()

    def save(self, session: Session) -> Path:
        """Validate and atomically write ``session``; refreshes ``last_updated_at``."""
        session.last_updated_at = utc_timestamp()
        payload = session.to_dict()
        try:
            validate_payload(payload, SESSION_SCHEMA)
        except SchemaValidationError as e:
            raise SessionError(
                "Refusing to save invalid session record",
                session_id=session.session_id,
                operation="save",
                details=str(e),
            ) from e
        path = self.path_for(session.session_id)
        write_json_atomic(path, payload)
        logger.debug("Saved session %s to %s", session.session_id, path)
        return path

    def load(self, session_id: str) -> Session:
        """Load and validate a session record.

        Raises:
            SessionError: If the record is missing, unreadable, or invalid.
        """
        path = self.path_for(session_id)
        try:
            data = read_json(path)
        except FileNotFoundError as e:
            raise SessionError("Session not found", session_id=session_id, operation="load") from e
        except ValueError as e:
            raise SessionError(
                "Session record is not valid JSON",
                session_id=session_id,
                operation="load",
                details=str(e),
            ) from e
        try:
            validate_payload(data, SESSION_SCHEMA)
        except SchemaValidationError as e:
            raise SessionError(
                "Session record failed validation",
                session_id=session_id,
                operation="load",
                details=str(e),
            ) from e
        return Session.from_dict(data)

    def load_optional(self, session_id: str) -> Optional[Session]:
        """Load a record if present; unreadable records are logged and treated as absent."""
        if not self.exists(session_id):
            return None
        try:
            return self.load(session_id)
        except SessionError as e:
            logger.warning("Ignoring unreadable session %s: %s", session_id, e)
            return None

    def delete(self, session_id: str) -> bool:
        """Delete the record and its artifacts. Returns True if anything was removed."""
        removed = False
        path = self.path_for(session_id)
        if path.exists():
            path.unlink()
            removed = True
        artifacts = self.artifacts_dir(session_id)
        if artifacts.exists():
            shutil.rmtree(artifacts)
            removed = True
        return removed

    def list_ids(self) -> List[str]:
        """Session ids that have a record or an artifacts directory."""
        ids = set()
        if self.sessions_dir.is_dir():
            ids.update(p.stem for p in self.sessions_dir.glob("*.json"))
        if self.artifacts_root.is_dir():
            ids.update(p.name for p in self.artifacts_root.iterdir() if p.is_dir())
        return sorted(i for i in ids if _SESSION_ID_RE.match(i))

    # ---------- progress updates ----------

    def set_status(self, session_id: str, status: SessionStatus) -> Session:
        session = self.load(session_id)
        session.status = status
        self.save(session)
        return session

    def record_step(
        self,
        session_id: str,
        step: str,
        *,
        commit_hash: str,
        summary: str,
    ) -> Session:
        """Mark ``step`` completed and append its summary."""
        session = self.load(session_id)
        if step not in session.steps_completed:
            session.steps_completed.append(step)
        session.step_summaries.append(
            StepSummary(step=step, commit_hash=commit_hash, summary=summary)
        )
        if session.status is SessionStatus.PENDING:
            session.status = SessionStatus.IN_PROGRESS
        if session.total_steps and len(session.steps_completed) >= session.total_steps:
            session.status = SessionStatus.COMPLETED
        self.save(session)
        return session


__all__ = ["SessionStore", "sanitize_session_id", "SESSION_SCHEMA"]
