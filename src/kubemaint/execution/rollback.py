"""LIFO stack of compensating actions.

Push a compensating action *before* performing the step it undoes; clear
the stack once the whole multi-step operation has succeeded; execute it
when anything fails. Execution is best-effort: one failing action is
logged and the rest still run.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from kubemaint.core.logging import get_logger

_logger = get_logger("rollback")

RollbackAction = Callable[[], Any]


@dataclass(frozen=True)
class RollbackEntry:
    """One compensating action and a human-readable description."""

    action: RollbackAction
    description: str


@dataclass
class RollbackReport:
    """Outcome of one execute_all() pass, in execution order."""

    executed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def total(self) -> int:
        return len(self.executed) + len(self.failed)


class RollbackStack:
    """Compensating actions, executed most-recent-first.

    A single lock guards push and drain so entries pushed from another
    thread are never lost or executed twice.
    """

    def __init__(self) -> None:
        self._entries: list[RollbackEntry] = []
        self._lock = Lock()

    def push(self, action: RollbackAction, description: str) -> None:
        """Register a compensating action. Never fails."""
        with self._lock:
            self._entries.append(RollbackEntry(action=action, description=description))
            depth = len(self._entries)
        _logger.debug("rollback.pushed", description=description, depth=depth)

    def execute_all(self) -> RollbackReport:
        """Run every pending action in reverse push order and empty the stack.

        A failing action is logged and counted; later actions still run.
        Calling this on an empty stack is a no-op.
        """
        with self._lock:
            entries = self._entries
            self._entries = []

        report = RollbackReport()
        if not entries:
            return report

        _logger.warning("rollback.started", actions=len(entries))
        for entry in reversed(entries):
            try:
                entry.action()
            except Exception as e:
                report.failed.append(entry.description)
                _logger.error(
                    "rollback.action_failed",
                    description=entry.description,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            else:
                report.executed.append(entry.description)
                _logger.info("rollback.action_executed", description=entry.description)

        _logger.info(
            "rollback.completed",
            executed=len(report.executed),
            failed=len(report.failed),
        )
        return report

    def clear(self) -> None:
        """Discard pending actions without running them."""
        with self._lock:
            discarded = len(self._entries)
            self._entries = []
        if discarded:
            _logger.debug("rollback.cleared", discarded=discarded)

    def mark(self) -> int:
        """Current depth, for a later release() back to this point."""
        with self._lock:
            return len(self._entries)

    def release(self, mark: int) -> None:
        """Discard, without running, every action pushed since ``mark``."""
        with self._lock:
            discarded = max(0, len(self._entries) - mark)
            del self._entries[mark:]
        if discarded:
            _logger.debug("rollback.released", discarded=discarded)

    def pending(self) -> list[str]:
        """Descriptions of pending actions, in the order they would run."""
        with self._lock:
            return [entry.description for entry in reversed(self._entries)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
