"""Plan document inspection.

Full plan parsing belongs to the planning layer; the worktree lifecycle
only needs to know that a plan exists and which execution steps it
declares (``#### Step 0: Setup {#step-0}``).
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List

from specks.core.exceptions import PlanNotFoundError, PlanValidationError

_STEP_HEADING_RE = re.compile(
    r"^#{2,6}\s+Step\s+\d+(?:\.\d+)*\b.*\{#(?P<anchor>step-[A-Za-z0-9_-]+)\}\s*$",
    re.MULTILINE,
)


def resolve_plan_path(repo_root: Path, plan_path: Path | str) -> tuple[Path, str]:
    """Return ``(absolute_path, repo_relative_posix_path)`` for a plan.

    Raises:
        PlanNotFoundError: If the file does not exist or lies outside ``repo_root``.
    """
    candidate = Path(plan_path)
    absolute = candidate if candidate.is_absolute() else repo_root / candidate
    absolute = absolute.resolve()
    if not absolute.is_file():
        raise PlanNotFoundError(f"Plan not found: {plan_path}", context={"plan": str(plan_path)})
    try:
        relative = absolute.relative_to(repo_root.resolve())
    except ValueError as e:
        raise PlanNotFoundError(
            f"Plan {plan_path} is outside the repository {repo_root}",
            context={"plan": str(plan_path)},
        ) from e
    return absolute, relative.as_posix()


def step_anchors(text: str) -> List[str]:
    """Anchors of the execution-step headings in plan ``text``, in document order."""
    return [m.group("anchor") for m in _STEP_HEADING_RE.finditer(text)]


def require_steps(plan_file: Path) -> List[str]:
    """Return the plan's step anchors, failing when it declares none.

    Raises:
        PlanValidationError: If the plan has no execution steps.
    """
    anchors = step_anchors(plan_file.read_text(encoding="utf-8"))
    if not anchors:
        raise PlanValidationError(
            f"Plan {plan_file.name} has no execution steps",
            context={"plan": str(plan_file)},
        )
    return anchors


__all__ = ["resolve_plan_path", "step_anchors", "require_steps"]
