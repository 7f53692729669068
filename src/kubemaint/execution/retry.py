"""Retry engine with exponential backoff, jitter and permanent-failure short-circuit.

Each attempt's failure is caught inside the engine and never escapes
mid-loop; only the terminal outcome reaches the caller. Interrupts
(KeyboardInterrupt, OperationInterrupted) are never caught here.

Delay schedule for a policy with initial_delay=2, max_delay=60:
    attempt 1 fails -> sleep 2s
    attempt 2 fails -> sleep ~4s (+/- 25%)
    attempt 3 fails -> sleep ~8s (+/- 25%)
    ...
    capped at 60s, jitter never pushes a delay above max_delay.

Example usage:
    from kubemaint.execution.retry import RetryPolicy, retry_call

    policy = RetryPolicy(max_attempts=3, operation="get_node")
    node = retry_call(policy, lambda: kubectl.get_node("worker-1"), classifier)
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from kubemaint.core.errors import (
    ErrorKind,
    MaintenanceError,
    OperationInterrupted,
    PermanentFailureClassifier,
    RetryDelays,
    as_maintenance_error,
    classify_exception,
)
from kubemaint.core.logging import get_logger

if TYPE_CHECKING:
    from kubemaint.core.config import RetryConfig

_logger = get_logger("retry")

T = TypeVar("T")

Sleep = Callable[[float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds for one supervised operation.

    Attributes:
        max_attempts: Total attempts including the first. Must be >= 1.
        initial_delay: Seconds slept after the first failure.
        max_delay: Cap on any single delay, applied after growth and jitter.
        operation: Name used in logs and on raised errors.
        jitter_factor: Symmetric jitter as a fraction of the delay.
    """

    max_attempts: int = 3
    initial_delay: float = RetryDelays.INITIAL
    max_delay: float = RetryDelays.MAX
    operation: str = "operation"
    jitter_factor: float = RetryDelays.JITTER_FACTOR

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be non-negative")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    @classmethod
    def from_config(cls, config: RetryConfig, operation: str = "operation") -> RetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            initial_delay=config.initial_delay_seconds,
            max_delay=config.max_delay_seconds,
            operation=operation,
            jitter_factor=config.jitter_factor,
        )


@dataclass
class RetryStats:
    """What happened across the attempts of one retry_call."""

    attempts: int = 0
    delays: list[float] = field(default_factory=list)
    last_kind: ErrorKind | None = None

    @property
    def total_delay(self) -> float:
        return sum(self.delays)


def next_delay(current: float, policy: RetryPolicy, rng: random.Random | None = None) -> float:
    """Compute the delay that follows ``current``.

    Doubles, caps at max_delay, applies symmetric jitter of the capped
    value, then clamps to [0, max_delay].
    """
    grown = min(current * RetryDelays.BACKOFF_MULTIPLIER, policy.max_delay)
    if policy.jitter_factor > 0 and grown > 0:
        source = rng if rng is not None else random
        grown += grown * policy.jitter_factor * source.uniform(-1.0, 1.0)
    return min(max(grown, 0.0), policy.max_delay)


def retry_call(
    policy: RetryPolicy,
    unit_of_work: Callable[[], T],
    classifier: PermanentFailureClassifier | None = None,
    sleep: Sleep = time.sleep,
    rng: random.Random | None = None,
    stats: RetryStats | None = None,
) -> T:
    """Run ``unit_of_work`` until it succeeds, fails permanently, or attempts run out.

    Args:
        policy: Attempt and delay bounds.
        unit_of_work: Zero-argument callable; raising means failure.
        classifier: Permanent/transient table. Defaults to the standard one.
        sleep: Sleep function, injectable for tests.
        rng: Random source for jitter, injectable for tests.
        stats: Optional record filled in as attempts happen.

    Returns:
        The unit of work's return value.

    Raises:
        MaintenanceError: The last failure, classified, with ``attempts`` set.
    """
    classifier = classifier or PermanentFailureClassifier()
    stats = stats if stats is not None else RetryStats()
    delay = policy.initial_delay

    for attempt in range(1, policy.max_attempts + 1):
        stats.attempts = attempt
        try:
            result = unit_of_work()
        except OperationInterrupted:
            raise
        except Exception as exc:
            kind = classify_exception(exc)
            stats.last_kind = kind
            error = as_maintenance_error(exc, policy.operation)
            error.attempts = attempt

            if classifier.is_permanent(kind):
                _logger.error(
                    "retry.permanent_failure",
                    operation=policy.operation,
                    attempt=attempt,
                    kind=kind.label,
                    error=error.message,
                )
                raise error

            if attempt >= policy.max_attempts:
                _logger.error(
                    "retry.exhausted",
                    operation=policy.operation,
                    attempts=attempt,
                    kind=kind.label,
                    error=error.message,
                )
                raise error

            _logger.warning(
                "retry.attempt_failed",
                operation=policy.operation,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                kind=kind.label,
                delay_seconds=round(delay, 2),
                error=error.message,
            )
            stats.delays.append(delay)
            sleep(delay)
            delay = next_delay(delay, policy, rng)
        else:
            if attempt > 1:
                _logger.info(
                    "retry.succeeded", operation=policy.operation, attempt=attempt
                )
            return result

    # Unreachable: the loop either returns or raises on its last attempt.
    raise MaintenanceError("retry loop exited without a result", operation=policy.operation)


__all__ = [
    "RetryPolicy",
    "RetryStats",
    "next_delay",
    "retry_call",
]
