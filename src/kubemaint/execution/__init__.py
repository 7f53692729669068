"""Resilience framework: circuit breakers, retries, rollback and supervision."""

from kubemaint.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitBreakerSnapshot,
    CircuitBreakerStats,
    CircuitState,
)
from kubemaint.execution.lifecycle import CommandRunner, validate_error_handling
from kubemaint.execution.resources import TempResources
from kubemaint.execution.retry import RetryPolicy, RetryStats, next_delay, retry_call
from kubemaint.execution.rollback import RollbackEntry, RollbackReport, RollbackStack
from kubemaint.execution.supervisor import OperationSupervisor, ResilienceContext

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitBreakerSnapshot",
    "CircuitBreakerStats",
    "CircuitState",
    "CommandRunner",
    "OperationSupervisor",
    "ResilienceContext",
    "RetryPolicy",
    "RetryStats",
    "RollbackEntry",
    "RollbackReport",
    "RollbackStack",
    "TempResources",
    "next_delay",
    "retry_call",
    "validate_error_handling",
]
