"""Operation supervisor: circuit breaker + retry + rollback in one place.

Every cluster call goes through OperationSupervisor.execute(), which
checks the service's breaker, runs the unit of work under the retry
engine, and records only the terminal outcome back on the breaker.

All shared mutable state lives on a ResilienceContext created per
process (or per test) and passed in explicitly.

Example usage:
    context = ResilienceContext.from_config(config)
    context.initialize()
    supervisor = OperationSupervisor(context)

    node = supervisor.execute(
        "kubectl",
        supervisor.policy("get_node"),
        lambda: kubectl.get_node("worker-1"),
    )

    with supervisor.guarded("cordon", lambda: kubectl.uncordon("worker-1"),
                            "Uncordon node worker-1"):
        supervisor.execute("kubectl", supervisor.policy("cordon"),
                           lambda: kubectl.cordon("worker-1"))
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

from kubemaint.core.config import MaintenanceConfig, RetryConfig, RuntimeToggles
from kubemaint.core.errors import (
    MaintenanceError,
    OperationInterrupted,
    PermanentFailureClassifier,
)
from kubemaint.core.logging import get_logger, narrowed_context
from kubemaint.execution.circuit_breaker import CircuitBreakerRegistry, Clock
from kubemaint.execution.resources import TempResources
from kubemaint.execution.retry import RetryPolicy, RetryStats, Sleep, retry_call
from kubemaint.execution.rollback import RollbackAction, RollbackStack

_logger = get_logger("supervisor")

T = TypeVar("T")


@dataclass
class ResilienceContext:
    """Process-scoped resilience state.

    Attributes:
        config: The loaded configuration.
        breakers: One circuit breaker per service.
        rollback: Pending compensating actions.
        classifier: Permanent/transient failure table.
        temp: Temporary resources removed on every exit path.
        dry_run: Replace cluster mutations with logged no-ops.
        debug: Verbose diagnostics.
    """

    config: MaintenanceConfig = field(default_factory=MaintenanceConfig)
    breakers: CircuitBreakerRegistry = field(default_factory=CircuitBreakerRegistry)
    rollback: RollbackStack = field(default_factory=RollbackStack)
    classifier: PermanentFailureClassifier = field(default_factory=PermanentFailureClassifier)
    temp: TempResources = field(default_factory=TempResources)
    dry_run: bool = False
    debug: bool = False
    initialized: bool = False

    @classmethod
    def from_config(
        cls,
        config: MaintenanceConfig | None = None,
        toggles: RuntimeToggles | None = None,
        clock: Clock = time.monotonic,
    ) -> ResilienceContext:
        """Build a fresh context from configuration and runtime toggles."""
        config = config or MaintenanceConfig()
        toggles = toggles or RuntimeToggles()
        return cls(
            config=config,
            breakers=CircuitBreakerRegistry(
                failure_threshold=config.circuit_breaker.failure_threshold,
                reset_timeout=config.circuit_breaker.reset_timeout_seconds,
                clock=clock,
            ),
            rollback=RollbackStack(),
            classifier=PermanentFailureClassifier(config.retry.permanent_error_kinds()),
            temp=TempResources(),
            dry_run=toggles.dry_run,
            debug=toggles.debug,
        )

    @property
    def retry_defaults(self) -> RetryConfig:
        return self.config.retry

    def initialize(self) -> None:
        """Register well-known services. Safe to call more than once."""
        if self.initialized:
            return
        self.breakers.initialize()
        self.initialized = True
        _logger.debug(
            "supervisor.context_initialized",
            dry_run=self.dry_run,
            permanent_kinds=sorted(k.label for k in self.classifier.permanent_kinds),
        )

    def teardown(self) -> None:
        """Drop breakers, pending rollback actions and temp resources."""
        self.breakers.clear()
        self.rollback.clear()
        self.temp.cleanup()
        self.initialized = False


class OperationSupervisor:
    """Runs units of work under circuit breaker, retry and rollback bookkeeping."""

    def __init__(
        self,
        context: ResilienceContext,
        sleep: Sleep = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._context = context
        self._sleep = sleep
        self._rng = rng

    @property
    def context(self) -> ResilienceContext:
        return self._context

    @property
    def dry_run(self) -> bool:
        return self._context.dry_run

    def policy(self, operation: str, **overrides: Any) -> RetryPolicy:
        """Build a policy from the context's retry defaults.

        Keyword overrides replace individual RetryPolicy fields.
        """
        base = RetryPolicy.from_config(self._context.retry_defaults, operation=operation)
        return replace(base, **overrides) if overrides else base

    def mutation(self, description: str, action: Callable[[], T]) -> Callable[[], T | None]:
        """Wrap a cluster mutation so dry-run mode logs it instead of running it.

        The wrapped unit still goes through execute(), so breaker, retry and
        rollback bookkeeping behave the same with and without dry-run.
        """
        if not self.dry_run:
            return action

        def dry_run() -> None:
            _logger.info("supervisor.dry_run", action=description)

        return dry_run

    def execute(
        self,
        service: str,
        policy: RetryPolicy,
        unit_of_work: Callable[[], T],
    ) -> T:
        """Run ``unit_of_work`` against ``service``.

        Raises:
            CircuitOpenError: The breaker rejected the call; the unit did not run.
            MaintenanceError: The terminal, classified failure.
        """
        if not self._context.initialized:
            self._context.initialize()

        breakers = self._context.breakers
        breakers.check_state(service)

        stats = RetryStats()
        try:
            with narrowed_context(operation=policy.operation):
                result = retry_call(
                    policy,
                    unit_of_work,
                    self._context.classifier,
                    sleep=self._sleep,
                    rng=self._rng,
                    stats=stats,
                )
        except OperationInterrupted:
            raise
        except MaintenanceError as e:
            breakers.record_result(service, success=False)
            _logger.error(
                "supervisor.operation_failed",
                service=service,
                operation=policy.operation,
                attempts=stats.attempts,
                kind=e.kind.label,
                error=e.message,
            )
            raise

        breakers.record_result(service, success=True)
        _logger.debug(
            "supervisor.operation_succeeded",
            service=service,
            operation=policy.operation,
            attempts=stats.attempts,
        )
        return result

    @contextmanager
    def guarded(
        self,
        operation: str,
        rollback: RollbackAction,
        description: str,
    ) -> Iterator[None]:
        """Register ``rollback`` before a multi-step mutation.

        On normal exit from the block the compensating action (and anything
        pushed inside the block) is discarded. On failure it stays on the
        stack for the top-level runner to execute.
        """
        stack = self._context.rollback
        mark = stack.mark()
        stack.push(rollback, description)
        _logger.debug("supervisor.guard_entered", operation=operation, rollback=description)
        yield
        stack.release(mark)
        _logger.debug("supervisor.guard_released", operation=operation)


__all__ = [
    "OperationSupervisor",
    "ResilienceContext",
]
