"""Compensating transactions for multi-step worktree provisioning.

Each step pairs an action with the action that undoes it. On the first
failure the completed steps are compensated in reverse order. Compensation
is best-effort: its failures are logged and the original error is the one
the caller sees.

    with Transaction("create auth") as tx:
        tx.run("branch", create_branch, compensate=delete_branch)
        tx.run("worktree", add_worktree, compensate=remove_worktree, partial=True)
        tx.commit()
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable, List, Optional, Type

logger = logging.getLogger(__name__)


class TransactionStepError(Exception):
    """A transaction step failed; ``__cause__`` holds the underlying error."""

    def __init__(self, step: str, error: BaseException) -> None:
        super().__init__(f"step '{step}' failed: {error}")
        self.step = step
        self.error = error


@dataclass
class _Compensation:
    step: str
    undo: Callable[[], Any]


class Transaction:
    """Ordered (action, compensation) pairs unwound in reverse on failure."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._undo: List[_Compensation] = []
        self._committed = False
        self.completed: List[str] = []
        self.rolled_back: List[str] = []

    def run(
        self,
        step: str,
        action: Callable[[], Any],
        *,
        compensate: Optional[Callable[[], Any]] = None,
        partial: bool = False,
    ) -> Any:
        """Run ``action`` and register ``compensate`` for it.

        Args:
            step: Step name used in logs and errors.
            action: Zero-argument callable performing the step.
            compensate: Zero-argument callable undoing the step.
            partial: The action can fail after changing state, so its
                compensation runs even when the action itself raised.
                The compensation must tolerate a half-finished action.

        Raises:
            TransactionStepError: Wrapping whatever ``action`` raised.
        """
        if self._committed:
            raise RuntimeError(f"transaction {self.name!r} already committed")
        logger.debug("[%s] %s", self.name, step)
        try:
            result = action()
        except Exception as e:
            if partial and compensate is not None:
                self._undo.append(_Compensation(step, compensate))
            raise TransactionStepError(step, e) from e
        except KeyboardInterrupt:
            if partial and compensate is not None:
                self._undo.append(_Compensation(step, compensate))
            raise
        if compensate is not None:
            self._undo.append(_Compensation(step, compensate))
        self.completed.append(step)
        return result

    def commit(self) -> None:
        """Keep every completed step; nothing will be compensated."""
        self._committed = True
        self._undo.clear()

    def rollback(self) -> None:
        """Run registered compensations in reverse order, logging any failure."""
        while self._undo:
            comp = self._undo.pop()
            try:
                comp.undo()
                self.rolled_back.append(comp.step)
            except Exception as e:
                logger.warning(
                    "[%s] Failed to compensate step %s: %s", self.name, comp.step, e
                )

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if exc_type is not None and not self._committed:
            logger.info("[%s] rolling back after failure: %s", self.name, exc)
            self.rollback()


__all__ = ["Transaction", "TransactionStepError"]
