from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence


class SpecksError(Exception):
    """Base exception for specks."""

    exit_code: int = 1
    error_code: str = "error"
    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "error": self.error_code,
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


# ---------------------------------------------------------------------------
# Preconditions (nothing mutated)
# ---------------------------------------------------------------------------


class NotARepositoryError(SpecksError, ValueError):
    """Raised when the given root is not a git working directory."""

    exit_code = 5
    error_code = "not_a_repository"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        SpecksError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class GitVersionError(SpecksError, RuntimeError):
    """Raised when git is missing or older than the supported minimum."""

    exit_code = 4
    error_code = "git_version"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        SpecksError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class BaseBranchNotFoundError(SpecksError, ValueError):
    """Raised when the requested base branch does not exist."""

    exit_code = 6
    error_code = "base_branch_not_found"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        SpecksError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class PlanNotFoundError(SpecksError, FileNotFoundError):
    """Raised when a plan document cannot be found."""

    exit_code = 7
    error_code = "plan_not_found"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        SpecksError.__init__(self, message, context=context)
        FileNotFoundError.__init__(self, message)


class PlanValidationError(SpecksError, ValueError):
    """Raised when a plan declares no execution steps."""

    exit_code = 8
    error_code = "plan_has_no_steps"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        SpecksError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


# ---------------------------------------------------------------------------
# Worktree lifecycle
# ---------------------------------------------------------------------------


class WorktreeError(SpecksError, RuntimeError):
    """Raised for errors in worktree creation, removal, or inspection."""

    error_code = "worktree_error"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        SpecksError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class WorktreeExistsError(WorktreeError):
    """Raised when the target worktree directory is already occupied."""

    exit_code = 3
    error_code = "worktree_exists"


class WorktreeCreateError(WorktreeError):
    """A creation step failed; completed steps have been compensated."""

    error_code = "worktree_create_failed"

    def __init__(self, message: str, *, step: str, context: Mapping[str, Any] | None = None) -> None:
        ctx = dict(context or {})
        ctx["step"] = step
        super().__init__(message, context=ctx)
        self.step = step


class WorktreeNotFoundError(WorktreeError):
    """Raised when no live worktree matches a target."""

    exit_code = 12
    error_code = "worktree_not_found"


class AmbiguousTargetError(WorktreeError):
    """Raised when a removal target matches more than one live worktree."""

    exit_code = 9
    error_code = "ambiguous_target"

    def __init__(self, message: str, *, candidates: Sequence[Mapping[str, Any]]) -> None:
        self.candidates: List[Dict[str, Any]] = [dict(c) for c in candidates]
        super().__init__(message, context={"candidates": self.candidates})


class DirtyWorktreeError(WorktreeError):
    """Raised when a worktree has uncommitted changes and force was not given."""

    exit_code = 10
    error_code = "dirty_worktree"


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


class MergeError(SpecksError, RuntimeError):
    """Raised when a merge fails for a reason other than code conflicts."""

    error_code = "merge_failed"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        SpecksError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class MergePreconditionError(MergeError):
    """Raised when merge is not run from the primary checkout on the primary branch."""

    exit_code = 13
    error_code = "merge_precondition"


class MergeConflictError(MergeError):
    """Raised when a squash merge conflicts on non-infrastructure files."""

    exit_code = 11
    error_code = "merge_code_conflicts"

    def __init__(self, message: str, *, conflicts: Sequence[str]) -> None:
        self.conflicts = list(conflicts)
        super().__init__(message, context={"conflicts": self.conflicts})


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class GitCommandError(SpecksError, RuntimeError):
    """Raised when a git or gh invocation exits non-zero."""

    error_code = "command_failed"

    def __init__(
        self,
        message: str,
        *,
        argv: Sequence[str],
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        SpecksError.__init__(
            self,
            message,
            context={"argv": self.argv, "returncode": returncode, "stderr": stderr},
        )
        RuntimeError.__init__(self, message)


class SessionError(SpecksError):
    """Generic session persistence error."""

    error_code = "session_error"

    def __init__(
        self,
        message: str,
        *,
        session_id: str | None = None,
        operation: str | None = None,
        details: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if session_id:
            ctx["session_id"] = session_id
        if operation:
            ctx["operation"] = operation
        if details:
            ctx["details"] = details
        super().__init__(message, context=ctx)


class ConfigError(SpecksError, ValueError):
    """Raised when configuration cannot be loaded or fails validation."""

    error_code = "config_error"

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        SpecksError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


__all__ = [
    "SpecksError",
    "NotARepositoryError",
    "GitVersionError",
    "BaseBranchNotFoundError",
    "PlanNotFoundError",
    "PlanValidationError",
    "WorktreeError",
    "WorktreeExistsError",
    "WorktreeCreateError",
    "WorktreeNotFoundError",
    "AmbiguousTargetError",
    "DirtyWorktreeError",
    "MergeError",
    "MergePreconditionError",
    "MergeConflictError",
    "GitCommandError",
    "SessionError",
    "ConfigError",
]
