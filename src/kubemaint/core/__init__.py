"""Core domain models and utilities."""

from kubemaint.core.config import MaintenanceConfig, RuntimeToggles
from kubemaint.core.errors import ErrorKind, MaintenanceError
from kubemaint.core.logging import configure_logging, get_logger

__all__ = [
    "ErrorKind",
    "MaintenanceConfig",
    "MaintenanceError",
    "RuntimeToggles",
    "configure_logging",
    "get_logger",
]
