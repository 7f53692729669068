"""Retry, circuit breaker and timeout configuration models.

Defines the knobs that shape how the supervisor retries and isolates
failing cluster operations.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from kubemaint.core.errors.codes import DEFAULT_PERMANENT_KINDS, ErrorKind


class RetryConfig(BaseModel):
    """Configuration for retry behavior with exponential backoff and jitter."""

    max_attempts: int = Field(default=3, ge=1, description="Total attempts per operation")
    initial_delay_seconds: float = Field(
        default=2.0, ge=0, description="Delay before the second attempt"
    )
    max_delay_seconds: float = Field(default=60.0, ge=0, description="Cap on any single delay")
    jitter_factor: float = Field(
        default=0.25, ge=0, le=1, description="Symmetric jitter as a fraction of the delay"
    )
    permanent_kinds: list[str] = Field(
        default_factory=lambda: sorted(kind.label for kind in DEFAULT_PERMANENT_KINDS),
        description="Error kinds that are never retried",
    )

    @field_validator("permanent_kinds")
    @classmethod
    def _validate_kinds(cls, v: list[str]) -> list[str]:
        for label in v:
            kind = ErrorKind.from_label(label)
            if kind == ErrorKind.SUCCESS:
                raise ValueError("'success' cannot be a permanent failure kind")
        return v

    @model_validator(mode="after")
    def _validate_delay_range(self) -> RetryConfig:
        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError(
                f"initial_delay_seconds ({self.initial_delay_seconds}) must not exceed "
                f"max_delay_seconds ({self.max_delay_seconds})"
            )
        return self

    def permanent_error_kinds(self) -> frozenset[ErrorKind]:
        """Resolve the configured labels to ErrorKind members."""
        return frozenset(ErrorKind.from_label(label) for label in self.permanent_kinds)


class CircuitBreakerConfig(BaseModel):
    """Configuration for per-service circuit breakers.

    State transitions:
    - CLOSED -> OPEN: failure_threshold consecutive terminal failures
    - OPEN -> HALF_OPEN: reset_timeout_seconds after the last failure
    - HALF_OPEN -> CLOSED: the single probe succeeds
    - HALF_OPEN -> OPEN: the probe fails
    """

    failure_threshold: int = Field(
        default=5, ge=1, description="Consecutive failures before the circuit opens"
    )
    reset_timeout_seconds: float = Field(
        default=300.0, gt=0, description="Cool-down before a half-open probe"
    )


class TimeoutConfig(BaseModel):
    """Per-call timeouts, in seconds."""

    kubectl_timeout: int = Field(default=60, ge=5, le=300)
    drain_timeout: int = Field(default=300, ge=60, le=3600)
    health_check_timeout: int = Field(default=120, ge=10, le=600)
    confirmation_timeout: int = Field(
        default=30, ge=1, description="Seconds to wait for an operator answer"
    )
