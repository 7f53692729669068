"""Top-level supervising routine for one kubemaint command.

CommandRunner wraps command dispatch in a structured boundary that runs
rollback and cleanup on every exit path:

Each run gets a scratch directory holding a PID file, both removed on exit.

- normal return: discard pending rollback, clean up, exit 0
- classified failure: log operation and location, roll back, clean up,
  exit with the failure's kind
- interrupt (SIGINT, SIGTERM, SIGHUP): log, roll back, clean up, exit 130

The rollback stack is always empty when run() returns.
"""

from __future__ import annotations

import shutil
import signal
import sys
import threading
import traceback
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from types import FrameType
from typing import Any

from rich.console import Console
from rich.markup import escape

from kubemaint.core.constants import KUBECTL_BINARY, PID_FILE_NAME
from kubemaint.core.errors import (
    INTERRUPT_SIGNALS,
    INTERRUPTED_EXIT_CODE,
    ErrorKind,
    OperationInterrupted,
    as_maintenance_error,
    get_signal_name,
)
from kubemaint.core.logging import OperationContext, get_logger, with_context
from kubemaint.execution.supervisor import ResilienceContext

_logger = get_logger("lifecycle")


def _raise_interrupted(signum: int, frame: FrameType | None) -> None:
    raise OperationInterrupted(signum)


@contextmanager
def interrupt_handlers() -> Iterator[None]:
    """Turn SIGTERM/SIGHUP into OperationInterrupted for the duration of a block.

    Previous handlers are restored afterwards. Outside the main thread (or on
    platforms without these signals) this is a no-op.
    """
    previous: dict[int, Any] = {}
    if sys.platform != "win32" and threading.current_thread() is threading.main_thread():
        for sig in INTERRUPT_SIGNALS:
            previous[sig] = signal.signal(sig, _raise_interrupted)
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def failure_location(exc: BaseException) -> str:
    """``file:line`` of the innermost frame that raised ``exc``."""
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return "unknown"
    last = frames[-1]
    return f"{last.filename}:{last.lineno}"


class CommandRunner:
    """Runs one command with rollback and cleanup guaranteed on every exit path."""

    def __init__(self, context: ResilienceContext, console: Console | None = None) -> None:
        self._context = context
        self._console = console
        self.workdir: Path | None = None
        """Scratch directory of the current run; removed when run() returns."""

    def run(self, command: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> int:
        """Run ``func(*args, **kwargs)`` and return the process exit code."""
        ctx = OperationContext(command=command)
        with with_context(ctx), interrupt_handlers():
            try:
                self._context.initialize()
                self._start(command)
                func(*args, **kwargs)
            except (KeyboardInterrupt, OperationInterrupted) as e:
                return self._on_interrupt(command, e)
            except Exception as e:
                return self._on_error(command, e)
            else:
                self._context.rollback.clear()
                _logger.info("command.completed", command=command)
                return ErrorKind.SUCCESS.exit_code
            finally:
                self._context.temp.cleanup()
                self.workdir = None

    def _start(self, command: str) -> None:
        temp = self._context.temp
        self.workdir = temp.make_temp_dir()
        pid_file = temp.write_pid_file(self.workdir / PID_FILE_NAME)
        _logger.debug(
            "command.started", command=command, workdir=str(self.workdir), pid_file=str(pid_file)
        )

    def _on_error(self, command: str, exc: Exception) -> int:
        error = as_maintenance_error(exc, operation=command)
        _logger.error(
            "command.failed",
            command=command,
            operation=error.operation,
            location=failure_location(exc),
            kind=error.kind.label,
            attempts=error.attempts,
            error=error.message,
        )
        if self._console is not None:
            self._console.print(f"[red]Error:[/red] {escape(str(error))}")
        self._rollback(command)
        return error.exit_code

    def _on_interrupt(self, command: str, exc: BaseException) -> int:
        if isinstance(exc, OperationInterrupted):
            reason = get_signal_name(exc.signum)
        else:
            reason = "SIGINT"
        _logger.warning("command.interrupted", command=command, signal=reason)
        if self._console is not None:
            self._console.print(f"\n[yellow]Interrupted ({reason}), rolling back...[/yellow]")
        self._rollback(command)
        return INTERRUPTED_EXIT_CODE

    def _rollback(self, command: str) -> None:
        report = self._context.rollback.execute_all()
        if report.total and self._console is not None:
            style = "green" if report.ok else "yellow"
            self._console.print(
                f"[{style}]Rollback: {len(report.executed)} action(s) executed, "
                f"{len(report.failed)} failed[/{style}]"
            )
        if report.failed:
            _logger.error("command.rollback_incomplete", command=command, failed=report.failed)


def validate_error_handling(
    context: ResilienceContext,
    which: Callable[[str], str | None] | None = None,
) -> list[str]:
    """Report problems that would stop error handling from working.

    Returns:
        Human-readable issues; empty when everything is in place.
    """
    find = which or shutil.which
    issues: list[str] = []
    if not context.initialized:
        issues.append("resilience context has not been initialized")
    if find(KUBECTL_BINARY) is None:
        issues.append(f"required tool {KUBECTL_BINARY!r} not found on PATH")
    if len(context.rollback):
        issues.append(f"rollback stack is not empty ({len(context.rollback)} pending)")
    for issue in issues:
        _logger.warning("lifecycle.validation_issue", issue=issue)
    return issues


__all__ = [
    "CommandRunner",
    "failure_location",
    "interrupt_handlers",
    "validate_error_handling",
]
