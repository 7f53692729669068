"""Operator confirmation prompts with a bounded wait.

A prompt that receives no answer within its timeout resolves to its
default instead of blocking the run forever.
"""

from __future__ import annotations

import select
import sys
from collections.abc import Callable

from rich.console import Console

from kubemaint.core.logging import get_logger

_logger = get_logger("prompts")

LineReader = Callable[[float], "str | None"]


def read_line_with_timeout(timeout: float) -> str | None:
    """Read one line from stdin, or return None if none arrives in time.

    Falls back to a plain readline when stdin has no real file descriptor
    (captured or redirected input).
    """
    try:
        fd = sys.stdin.fileno()
    except (AttributeError, OSError, ValueError):
        line = sys.stdin.readline()
        return line if line else None

    ready, _, _ = select.select([fd], [], [], timeout)
    if not ready:
        return None
    line = sys.stdin.readline()
    return line if line else None


class Prompter:
    """Asks the operator yes/no questions.

    Args:
        console: Where prompts are printed.
        reader: Reads one line with a timeout; None means no answer.
        timeout: Default seconds to wait for an answer.
    """

    def __init__(
        self,
        console: Console | None = None,
        reader: LineReader = read_line_with_timeout,
        timeout: float = 30,
    ) -> None:
        self.console = console or Console(stderr=True)
        self._reader = reader
        self.timeout = timeout

    def confirm(self, message: str, default: bool = False, timeout: float | None = None) -> bool:
        """Ask a yes/no question; the default applies on timeout or empty input."""
        wait = self.timeout if timeout is None else timeout
        choices = "Y/n" if default else "y/N"
        self.console.print(f"\n[yellow]{message} ({choices}) [timeout: {wait:g}s][/yellow]")

        answer = self._reader(wait)
        if answer is None:
            _logger.warning("prompt.timed_out", timeout_seconds=wait, default=default)
            return default

        answer = answer.strip().lower()
        if not answer:
            return default
        if default:
            return answer not in ("n", "no")
        return answer in ("y", "yes")

    def confirm_critical(
        self,
        message: str,
        required: str = "yes",
        timeout: float | None = None,
    ) -> bool:
        """Require the operator to type ``required`` exactly; timeout cancels."""
        wait = self.timeout if timeout is None else timeout
        self.console.print("\n[bold red]CRITICAL OPERATION[/bold red]")
        self.console.print(f"[yellow]{message}[/yellow]")
        self.console.print(f"[yellow]Type '{required}' to confirm:[/yellow]")

        answer = self._reader(wait)
        confirmed = answer is not None and answer.strip() == required
        _logger.info("prompt.critical_answered", confirmed=confirmed, timed_out=answer is None)
        return confirmed


def confirm_action(message: str, default: bool = False, timeout: float = 30) -> bool:
    """Ask a yes/no question on the terminal with a bounded wait."""
    return Prompter(timeout=timeout).confirm(message, default=default)


def confirm_critical_action(message: str, required: str = "yes", timeout: float = 30) -> bool:
    """Ask the operator to type ``required`` to continue."""
    return Prompter(timeout=timeout).confirm_critical(message, required=required)
