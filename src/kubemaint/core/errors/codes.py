"""Error kinds, exit codes, and retry classification.

Contains the closed failure taxonomy used throughout kubemaint.

This module provides:
- ErrorKind: Every failure category, with its stable process exit code
- RetryDelays: Constants for retry timing
- DEFAULT_PERMANENT_KINDS: Kinds that retrying cannot fix
- PermanentFailureClassifier: Configurable permanent/transient table

Error Kind Taxonomy
===================

Each kind maps to exactly one process exit code so that cron jobs and CI
pipelines can branch on the exit status of ``kubemaint``.

    | Kind          | Exit | Retriable (default) |
    |---------------|------|---------------------|
    | SUCCESS       | 0    | n/a                 |
    | GENERAL       | 1    | Yes                 |
    | CONFIG        | 2    | No                  |
    | NETWORK       | 3    | Yes                 |
    | AUTH          | 4    | No                  |
    | EXTERNAL_TOOL | 5    | Yes                 |
    | TIMEOUT       | 6    | Yes                 |
    | VALIDATION    | 7    | No                  |
    | PERMISSION    | 8    | No                  |
    | NOT_FOUND     | 9    | Yes                 |
    | CIRCUIT_OPEN  | 10   | Yes                 |

An interrupted run (SIGINT/SIGTERM) exits with ``INTERRUPTED_EXIT_CODE``
(130), which is deliberately outside the taxonomy.

Usage
-----

Example::

    classifier = PermanentFailureClassifier()
    if classifier.is_permanent(error.kind):
        raise error
    time.sleep(RetryDelays.INITIAL)
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import IntEnum

# =============================================================================
# Exit Codes
# =============================================================================

INTERRUPTED_EXIT_CODE = 130
"""Exit status used when an operator interrupts a run (128 + SIGINT)."""


# =============================================================================
# Retry Delay Constants
# =============================================================================


class RetryDelays:
    """Constants for retry delay durations.

    These are the defaults applied when no configuration overrides them.
    """

    INITIAL: float = 2.0  # First backoff delay
    MAX: float = 60.0  # Cap applied after growth and jitter
    JITTER_FACTOR: float = 0.25  # Symmetric +/-25%
    BACKOFF_MULTIPLIER: float = 2.0

    # Circuit breaker cool-down before a half-open probe
    CIRCUIT_RESET: float = 300.0


# =============================================================================
# Error Kinds
# =============================================================================


class ErrorKind(IntEnum):
    """Closed set of failure categories.

    The integer value of each member is its process exit code. Callers
    should compare kinds, not raw numbers.
    """

    SUCCESS = 0
    """No failure."""

    GENERAL = 1
    """Unclassified failure - the default for anything unrecognized."""

    CONFIG = 2
    """Configuration is missing, malformed, or a required tool is absent."""

    NETWORK = 3
    """The cluster API could not be reached."""

    AUTH = 4
    """Credentials were rejected (401 / Unauthorized)."""

    EXTERNAL_TOOL = 5
    """An external tool (kubectl) exited non-zero for another reason."""

    TIMEOUT = 6
    """An operation exceeded its per-call timeout."""

    VALIDATION = 7
    """Input failed validation (bad node name, invalid flag)."""

    PERMISSION = 8
    """The caller is authenticated but not allowed (403 / Forbidden)."""

    NOT_FOUND = 9
    """The requested resource does not exist."""

    CIRCUIT_OPEN = 10
    """The call was rejected by an open circuit breaker."""

    @property
    def exit_code(self) -> int:
        """Process exit status for this kind."""
        return int(self)

    @property
    def label(self) -> str:
        """Lowercase name used in logs and config files."""
        return self.name.lower()

    @classmethod
    def from_exit_code(cls, code: int) -> ErrorKind:
        """Map a raw exit status back to a kind.

        Unknown non-zero codes resolve to GENERAL.
        """
        try:
            return cls(code)
        except ValueError:
            return cls.GENERAL

    @classmethod
    def from_label(cls, label: str) -> ErrorKind:
        """Parse a kind from its config-file label (e.g. ``"auth"``).

        Raises:
            ValueError: If the label does not name a kind.
        """
        try:
            return cls[label.strip().upper()]
        except KeyError:
            valid = ", ".join(kind.label for kind in cls)
            raise ValueError(f"Unknown error kind {label!r} (expected one of: {valid})") from None


# =============================================================================
# Permanent vs transient classification
# =============================================================================

DEFAULT_PERMANENT_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.AUTH,
    ErrorKind.PERMISSION,
    ErrorKind.VALIDATION,
    ErrorKind.CONFIG,
})
"""Kinds where retrying with the same inputs cannot succeed."""


class PermanentFailureClassifier:
    """Decides whether a failure kind is worth retrying.

    The table is configurable; the defaults treat NOT_FOUND and
    EXTERNAL_TOOL as transient because a node that is still registering
    or a kubectl call that hit a flaky apiserver often succeeds on retry.
    """

    def __init__(self, permanent_kinds: Iterable[ErrorKind] | None = None) -> None:
        kinds = DEFAULT_PERMANENT_KINDS if permanent_kinds is None else permanent_kinds
        self._permanent = frozenset(kinds)
        if ErrorKind.SUCCESS in self._permanent:
            raise ValueError("SUCCESS cannot be classified as a permanent failure")

    @property
    def permanent_kinds(self) -> frozenset[ErrorKind]:
        """Kinds that abort the retry loop immediately."""
        return self._permanent

    def is_permanent(self, kind: ErrorKind) -> bool:
        """Return True if retrying a failure of this kind is pointless."""
        return kind in self._permanent

    def is_transient(self, kind: ErrorKind) -> bool:
        """Return True if a failure of this kind may succeed on retry."""
        return kind != ErrorKind.SUCCESS and kind not in self._permanent

    def __call__(self, kind: ErrorKind) -> bool:
        return self.is_permanent(kind)

    def __repr__(self) -> str:
        kinds = ",".join(sorted(kind.label for kind in self._permanent))
        return f"PermanentFailureClassifier(permanent={kinds})"
