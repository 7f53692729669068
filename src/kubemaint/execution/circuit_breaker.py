"""Per-service circuit breakers.

Implements the circuit breaker pattern so that a cluster service which keeps
failing stops being hammered by every command in the run.

Each breaker has three states:
- CLOSED: Normal operation, calls flow through
- OPEN: Calls are rejected until the reset timeout has elapsed
- HALF_OPEN: Exactly one probe call is allowed to test recovery

State transitions:
- CLOSED -> OPEN: When failure_count >= failure_threshold
- OPEN -> HALF_OPEN: When a call is checked more than reset_timeout seconds
  after the last failure
- HALF_OPEN -> CLOSED: On success of the probe
- HALF_OPEN -> OPEN: On failure of the probe

Breakers only see terminal outcomes: the supervisor records one result per
supervised call, after retries are exhausted, never one per attempt.

Example usage:
    from kubemaint.execution.circuit_breaker import CircuitBreakerRegistry

    registry = CircuitBreakerRegistry(failure_threshold=5, reset_timeout=300.0)
    registry.initialize()

    registry.check_state("kubectl")  # raises CircuitOpenError when open
    try:
        result = run_kubectl(...)
    except Exception:
        registry.record_result("kubectl", success=False)
        raise
    registry.record_result("kubectl", success=True)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, replace
from enum import Enum
from threading import Lock
from typing import Any

from kubemaint.core.constants import WELL_KNOWN_SERVICES
from kubemaint.core.errors import CircuitOpenError, RetryDelays
from kubemaint.core.logging import get_logger

_logger = get_logger("circuit_breaker")

Clock = Callable[[], float]


class CircuitState(str, Enum):
    """State of a circuit breaker."""

    CLOSED = "closed"
    """Normal operation - calls are allowed and failures are counted."""

    OPEN = "open"
    """Blocking calls until the reset timeout elapses."""

    HALF_OPEN = "half_open"
    """One probe call is allowed to test whether the service recovered."""


@dataclass(frozen=True)
class CircuitBreakerSnapshot:
    """Immutable view of one breaker, for display and assertions."""

    name: str
    state: CircuitState
    failure_count: int
    last_failure_at: float | None
    failure_threshold: int
    reset_timeout: float
    probe_in_flight: bool = False


@dataclass
class CircuitBreakerStats:
    """Running counters for observability."""

    total_successes: int = 0
    total_failures: int = 0
    total_rejections: int = 0
    times_opened: int = 0
    times_half_opened: int = 0
    times_closed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_TRANSITION_COUNTERS = {
    CircuitState.OPEN: "times_opened",
    CircuitState.HALF_OPEN: "times_half_opened",
    CircuitState.CLOSED: "times_closed",
}


class CircuitBreaker:
    """Circuit breaker for a single named service.

    Thread-safe: all state reads and writes happen under the breaker's lock,
    so the single-probe guarantee in HALF_OPEN holds even when callers use
    threads.

    Attributes:
        name: Service name (used in logging and errors).
        failure_threshold: Consecutive failures before the circuit opens.
        reset_timeout: Seconds after the last failure before a probe is allowed.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = RetryDelays.CIRCUIT_RESET,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize a closed breaker.

        Args:
            name: Service name.
            failure_threshold: Consecutive failures before opening. Must be >= 1.
            reset_timeout: Cool-down in seconds. Must be positive.
            clock: Monotonic time source, injectable for tests.
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if reset_timeout <= 0:
            raise ValueError("reset_timeout must be positive")

        self._name = name
        self._failure_threshold = failure_threshold
        self._reset_timeout = reset_timeout
        self._clock = clock

        # State (protected by lock)
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_at: float | None = None
        self._probe_in_flight = False
        self._stats = CircuitBreakerStats()

        self._lock = Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    @property
    def reset_timeout(self) -> float:
        return self._reset_timeout

    @property
    def state(self) -> CircuitState:
        """Current state, without applying any timeout-driven transition."""
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def _set_state(self, new_state: CircuitState, reason: str) -> None:
        """Transition and update counters. Must be called with the lock held."""
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        counter = _TRANSITION_COUNTERS[new_state]
        setattr(self._stats, counter, getattr(self._stats, counter) + 1)
        _logger.info(
            "circuit_breaker.state_changed",
            service=self._name,
            from_state=old_state.value,
            to_state=new_state.value,
            reason=reason,
            failure_count=self._failure_count,
        )

    def _remaining(self, now: float) -> float:
        if self._last_failure_at is None:
            return 0.0
        return max(0.0, self._reset_timeout - (now - self._last_failure_at))

    def check_state(self) -> None:
        """Admit or reject a call.

        Raises:
            CircuitOpenError: If the circuit is open and still cooling down,
                or half-open with the probe already in flight.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return

            if self._state == CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    self._stats.total_rejections += 1
                    _logger.warning(
                        "circuit_breaker.rejected",
                        service=self._name,
                        state=self._state.value,
                        reason="probe_in_flight",
                    )
                    raise CircuitOpenError(self._name)
                self._probe_in_flight = True
                return

            now = self._clock()
            if self._last_failure_at is not None and now - self._last_failure_at > self._reset_timeout:
                self._set_state(CircuitState.HALF_OPEN, reason="reset_timeout_elapsed")
                self._probe_in_flight = True
                return

            retry_after = self._remaining(now)
            self._stats.total_rejections += 1
            _logger.warning(
                "circuit_breaker.rejected",
                service=self._name,
                state=self._state.value,
                retry_after_seconds=round(retry_after, 2),
            )
            raise CircuitOpenError(self._name, retry_after=retry_after)

    def can_execute(self) -> bool:
        """Non-raising peek: would check_state() admit a call right now?

        Does not transition state or claim the half-open probe.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.HALF_OPEN:
                return not self._probe_in_flight
            if self._last_failure_at is None:
                return False
            return self._clock() - self._last_failure_at > self._reset_timeout

    def record_result(self, success: bool) -> None:
        """Record the terminal outcome of one supervised call."""
        with self._lock:
            self._probe_in_flight = False
            if success:
                self._stats.total_successes += 1
                self._failure_count = 0
                self._last_failure_at = None
                self._set_state(CircuitState.CLOSED, reason="success")
                return

            self._stats.total_failures += 1
            self._failure_count += 1
            self._last_failure_at = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                self._set_state(CircuitState.OPEN, reason="probe_failed")
            elif self._failure_count >= self._failure_threshold:
                self._set_state(CircuitState.OPEN, reason="failure_threshold_reached")
            else:
                _logger.debug(
                    "circuit_breaker.failure_recorded",
                    service=self._name,
                    state=self._state.value,
                    failure_count=self._failure_count,
                    failure_threshold=self._failure_threshold,
                )

    def time_until_retry(self) -> float | None:
        """Seconds until a probe will be admitted, or None if not OPEN."""
        with self._lock:
            if self._state != CircuitState.OPEN:
                return None
            return self._remaining(self._clock())

    def reset(self) -> None:
        """Force the breaker back to CLOSED with a zero failure count."""
        with self._lock:
            self._failure_count = 0
            self._last_failure_at = None
            self._probe_in_flight = False
            self._set_state(CircuitState.CLOSED, reason="manual_reset")

    def snapshot(self) -> CircuitBreakerSnapshot:
        with self._lock:
            return CircuitBreakerSnapshot(
                name=self._name,
                state=self._state,
                failure_count=self._failure_count,
                last_failure_at=self._last_failure_at,
                failure_threshold=self._failure_threshold,
                reset_timeout=self._reset_timeout,
                probe_in_flight=self._probe_in_flight,
            )

    def get_stats(self) -> CircuitBreakerStats:
        """Return a copy of the running counters."""
        with self._lock:
            return replace(self._stats)

    def __repr__(self) -> str:
        failures = f"{self._failure_count}/{self._failure_threshold}"
        return f"<CircuitBreaker {self._name} {self._state.value} {failures}>"


class CircuitBreakerRegistry:
    """Owns one CircuitBreaker per service name.

    Unknown services get a fresh CLOSED breaker on first use; the
    well-known services are registered up front by initialize().
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = RetryDelays.CIRCUIT_RESET,
        clock: Clock = time.monotonic,
    ) -> None:
        self._failure_threshold = failure_threshold
        self._reset_timeout = reset_timeout
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = Lock()

    def initialize(self) -> None:
        """Register the well-known services. Idempotent."""
        for service in WELL_KNOWN_SERVICES:
            self.get(service)
        _logger.debug(
            "circuit_breaker.registry_initialized",
            services=list(WELL_KNOWN_SERVICES),
            failure_threshold=self._failure_threshold,
            reset_timeout=self._reset_timeout,
        )

    def get(self, service: str) -> CircuitBreaker:
        """Return the breaker for a service, creating it if needed."""
        with self._lock:
            breaker = self._breakers.get(service)
            if breaker is None:
                breaker = CircuitBreaker(
                    service,
                    failure_threshold=self._failure_threshold,
                    reset_timeout=self._reset_timeout,
                    clock=self._clock,
                )
                self._breakers[service] = breaker
            return breaker

    def check_state(self, service: str) -> None:
        """Admit or reject a call to a service. See CircuitBreaker.check_state."""
        self.get(service).check_state()

    def record_result(self, service: str, success: bool) -> None:
        self.get(service).record_result(success)

    def snapshots(self) -> list[CircuitBreakerSnapshot]:
        """Snapshots of every registered breaker, sorted by service name."""
        with self._lock:
            breakers = sorted(self._breakers.values(), key=lambda b: b.name)
        return [breaker.snapshot() for breaker in breakers]

    def clear(self) -> None:
        """Forget every breaker."""
        with self._lock:
            self._breakers.clear()

    def __contains__(self, service: object) -> bool:
        with self._lock:
            return service in self._breakers

    def __len__(self) -> int:
        with self._lock:
            return len(self._breakers)
