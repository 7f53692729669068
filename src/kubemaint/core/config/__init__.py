"""Configuration models for kubemaint.

This package provides Pydantic models for loading and validating YAML
maintenance configurations. All models are re-exported from this
``__init__``.
"""

from kubemaint.core.config.cluster import ClusterConfig, NodeMaintenanceConfig, ThresholdConfig
from kubemaint.core.config.execution import CircuitBreakerConfig, RetryConfig, TimeoutConfig
from kubemaint.core.config.maintenance import Environment, MaintenanceConfig, RuntimeToggles

__all__ = [
    "CircuitBreakerConfig",
    "ClusterConfig",
    "Environment",
    "MaintenanceConfig",
    "NodeMaintenanceConfig",
    "RetryConfig",
    "RuntimeToggles",
    "ThresholdConfig",
    "TimeoutConfig",
]
