"""
Session domain models.

A session binds one live worktree to one plan document. The record is an
index only; whether the worktree exists is always re-derived from git.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

SCHEMA_VERSION = "1"


class SessionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_RECONCILE = "needs_reconcile"


@dataclass
class StepSummary:
    """Progress note for one completed plan step."""

    step: str
    commit_hash: str
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "commit_hash": self.commit_hash, "summary": self.summary}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepSummary":
        return cls(
            step=str(data["step"]),
            commit_hash=str(data["commit_hash"]),
            summary=str(data["summary"]),
        )


@dataclass
class Session:
    """Persisted record for one plan worktree.

    Attributes:
        session_id: Worktree directory name without the ``specks__`` prefix
        speck_path: Plan path relative to the repository root
        speck_slug: Short plan identity used in the branch name
        branch_name: Branch checked out in the worktree
        base_branch: Branch the work merges back into
        worktree_path: Absolute worktree directory
        created_at: ISO 8601 UTC creation time
        last_updated_at: ISO 8601 UTC time of the last write
        status: Lifecycle status
        total_steps: Number of execution steps declared by the plan
        steps_completed: Anchors of finished steps
        beads_root: Root issue-tracker id, when synced
        bead_mapping: Step anchor to issue-tracker id
        reused: True when returned from an existing worktree
        step_summaries: Per-step progress notes
    """

    session_id: str
    speck_path: str
    speck_slug: str
    branch_name: str
    base_branch: str
    worktree_path: str
    created_at: str
    last_updated_at: str
    status: SessionStatus = SessionStatus.PENDING
    total_steps: int = 0
    steps_completed: List[str] = field(default_factory=list)
    beads_root: Optional[str] = None
    bead_mapping: Dict[str, str] = field(default_factory=dict)
    reused: bool = False
    step_summaries: List[StepSummary] = field(default_factory=list)
    schema_version: str = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Convert into the JSON-compatible record schema."""
        return {
            "schema_version": self.schema_version,
            "session_id": self.session_id,
            "speck_path": self.speck_path,
            "speck_slug": self.speck_slug,
            "branch_name": self.branch_name,
            "base_branch": self.base_branch,
            "worktree_path": self.worktree_path,
            "created_at": self.created_at,
            "last_updated_at": self.last_updated_at,
            "status": self.status.value,
            "total_steps": self.total_steps,
            "steps_completed": list(self.steps_completed),
            "beads_root": self.beads_root,
            "bead_mapping": dict(self.bead_mapping),
            "reused": self.reused,
            "step_summaries": [s.to_dict() for s in self.step_summaries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Create from a validated record dict."""
        return cls(
            schema_version=str(data.get("schema_version", SCHEMA_VERSION)),
            session_id=str(data["session_id"]),
            speck_path=str(data["speck_path"]),
            speck_slug=str(data.get("speck_slug", "")),
            branch_name=str(data["branch_name"]),
            base_branch=str(data["base_branch"]),
            worktree_path=str(data["worktree_path"]),
            created_at=str(data["created_at"]),
            last_updated_at=str(data.get("last_updated_at") or data["created_at"]),
            status=SessionStatus(data.get("status", SessionStatus.PENDING.value)),
            total_steps=int(data.get("total_steps", 0)),
            steps_completed=[str(s) for s in data.get("steps_completed") or []],
            beads_root=data.get("beads_root"),
            bead_mapping={str(k): str(v) for k, v in (data.get("bead_mapping") or {}).items()},
            reused=bool(data.get("reused", False)),
            step_summaries=[StepSummary.from_dict(s) for s in data.get("step_summaries") or []],
        )


__all__ = ["SCHEMA_VERSION", "Session", "SessionStatus", "StepSummary"]
