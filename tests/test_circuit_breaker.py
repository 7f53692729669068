"""Tests for kubemaint.execution.circuit_breaker module."""

import pytest

from kubemaint.core.errors import CircuitOpenError, ErrorKind
from kubemaint.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitBreakerStats,
    CircuitState,
)
from tests.helpers import FakeClock


def _open_breaker(clock: FakeClock, threshold: int = 3, reset: float = 300.0) -> CircuitBreaker:
    breaker = CircuitBreaker("kubectl", failure_threshold=threshold, reset_timeout=reset, clock=clock)
    for _ in range(threshold):
        breaker.record_result(False)
    assert breaker.state == CircuitState.OPEN
    return breaker


class TestCircuitState:
    """Tests for CircuitState enum."""

    def test_states_exist(self):
        assert CircuitState.CLOSED == "closed"
        assert CircuitState.OPEN == "open"
        assert CircuitState.HALF_OPEN == "half_open"


class TestCircuitBreakerInitialization:
    """Tests for CircuitBreaker initialization."""

    def test_default_values(self):
        breaker = CircuitBreaker("kubectl")
        assert breaker.failure_threshold == 5
        assert breaker.reset_timeout == 300.0
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.snapshot().last_failure_at is None

    def test_invalid_threshold(self):
        with pytest.raises(ValueError, match="failure_threshold"):
            CircuitBreaker("kubectl", failure_threshold=0)

    def test_invalid_reset_timeout(self):
        with pytest.raises(ValueError, match="reset_timeout"):
            CircuitBreaker("kubectl", reset_timeout=0)


class TestClosedState:
    """Behavior while CLOSED."""

    def test_always_allows(self, clock):
        breaker = CircuitBreaker("kubectl", failure_threshold=5, clock=clock)
        for _ in range(4):
            breaker.check_state()
            breaker.record_result(False)
        breaker.check_state()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 4

    def test_failure_stamps_time_without_opening(self, clock):
        breaker = CircuitBreaker("kubectl", failure_threshold=5, clock=clock)
        breaker.record_result(False)
        assert breaker.snapshot().last_failure_at == clock.now
        assert breaker.state == CircuitState.CLOSED

    def test_success_resets_count(self, clock):
        breaker = CircuitBreaker("kubectl", failure_threshold=5, clock=clock)
        breaker.record_result(False)
        breaker.record_result(False)
        breaker.record_result(True)
        snap = breaker.snapshot()
        assert snap.failure_count == 0
        assert snap.last_failure_at is None


class TestOpening:
    """CLOSED -> OPEN and rejection while cooling down."""

    def test_opens_at_threshold(self, clock):
        breaker = _open_breaker(clock, threshold=3)
        assert breaker.failure_count == 3
        assert breaker.snapshot().last_failure_at == clock.now

    def test_rejects_until_reset_timeout(self, clock):
        breaker = _open_breaker(clock, reset=300.0)
        clock.advance(299.0)
        with pytest.raises(CircuitOpenError) as exc_info:
            breaker.check_state()
        assert exc_info.value.kind == ErrorKind.CIRCUIT_OPEN
        assert exc_info.value.retry_after == pytest.approx(1.0)

    def test_rejects_at_exact_reset_timeout(self, clock):
        """The cool-down must be strictly exceeded."""
        breaker = _open_breaker(clock, reset=300.0)
        clock.advance(300.0)
        with pytest.raises(CircuitOpenError):
            breaker.check_state()

    def test_time_until_retry(self, clock):
        breaker = _open_breaker(clock, reset=300.0)
        clock.advance(100.0)
        assert breaker.time_until_retry() == pytest.approx(200.0)

    def test_time_until_retry_none_when_closed(self, clock):
        assert CircuitBreaker("kubectl", clock=clock).time_until_retry() is None


class TestHalfOpen:
    """OPEN -> HALF_OPEN probe behavior."""

    def test_transitions_after_reset_timeout(self, clock):
        breaker = _open_breaker(clock, reset=300.0)
        clock.advance(300.5)
        breaker.check_state()
        assert breaker.state == CircuitState.HALF_OPEN

    def test_allows_exactly_one_probe(self, clock):
        breaker = _open_breaker(clock)
        clock.advance(301.0)
        breaker.check_state()
        with pytest.raises(CircuitOpenError):
            breaker.check_state()

    def test_probe_failure_reopens_with_new_timestamp(self, clock):
        breaker = _open_breaker(clock)
        clock.advance(301.0)
        breaker.check_state()
        breaker.record_result(False)
        snap = breaker.snapshot()
        assert snap.state == CircuitState.OPEN
        assert snap.last_failure_at == clock.now
        with pytest.raises(CircuitOpenError):
            breaker.check_state()

    def test_probe_success_closes(self, clock):
        breaker = _open_breaker(clock)
        clock.advance(301.0)
        breaker.check_state()
        breaker.record_result(True)
        snap = breaker.snapshot()
        assert snap.state == CircuitState.CLOSED
        assert snap.failure_count == 0
        breaker.check_state()

    def test_can_execute_does_not_claim_probe(self, clock):
        breaker = _open_breaker(clock)
        assert breaker.can_execute() is False
        clock.advance(301.0)
        assert breaker.can_execute() is True
        assert breaker.state == CircuitState.OPEN
        breaker.check_state()
        assert breaker.can_execute() is False


class TestStatsAndReset:
    """Counters and manual reset."""

    def test_stats_track_transitions(self, clock):
        breaker = _open_breaker(clock, threshold=2)
        with pytest.raises(CircuitOpenError):
            breaker.check_state()
        clock.advance(301.0)
        breaker.check_state()
        breaker.record_result(True)

        stats = breaker.get_stats()
        assert stats.total_failures == 2
        assert stats.total_successes == 1
        assert stats.total_rejections == 1
        assert stats.times_opened == 1
        assert stats.times_half_opened == 1
        assert stats.times_closed == 1

    def test_stats_to_dict(self):
        assert CircuitBreakerStats(times_opened=2).to_dict()["times_opened"] == 2

    def test_reset(self, clock):
        breaker = _open_breaker(clock)
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        breaker.check_state()


class TestCircuitBreakerRegistry:
    """Tests for the per-service registry."""

    def test_initialize_registers_well_known_services(self):
        registry = CircuitBreakerRegistry()
        registry.initialize()
        assert {s.name for s in registry.snapshots()} == {
            "kubectl",
            "api_server",
            "metrics_server",
            "storage",
        }

    def test_initialize_is_idempotent(self):
        registry = CircuitBreakerRegistry()
        registry.initialize()
        registry.initialize()
        assert len(registry) == 4

    def test_unknown_service_created_closed(self):
        registry = CircuitBreakerRegistry()
        registry.check_state("ingress")
        assert "ingress" in registry
        assert registry.get("ingress").state == CircuitState.CLOSED

    def test_services_are_independent(self, clock):
        registry = CircuitBreakerRegistry(failure_threshold=1, clock=clock)
        registry.record_result("kubectl", success=False)
        with pytest.raises(CircuitOpenError):
            registry.check_state("kubectl")
        registry.check_state("storage")

    def test_breakers_inherit_settings(self, clock):
        registry = CircuitBreakerRegistry(failure_threshold=2, reset_timeout=60.0, clock=clock)
        breaker = registry.get("kubectl")
        assert breaker.failure_threshold == 2
        assert breaker.reset_timeout == 60.0

    def test_clear(self):
        registry = CircuitBreakerRegistry()
        registry.initialize()
        registry.clear()
        assert len(registry) == 0
