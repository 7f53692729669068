"""Error taxonomy and exception hierarchy.

Re-exports all public symbols.
"""

from kubemaint.core.errors.codes import (
    DEFAULT_PERMANENT_KINDS,
    INTERRUPTED_EXIT_CODE,
    ErrorKind,
    PermanentFailureClassifier,
    RetryDelays,
)
from kubemaint.core.errors.exceptions import (
    AuthError,
    CircuitOpenError,
    ConfigError,
    ExternalToolError,
    MaintenanceError,
    NetworkError,
    OperationInterrupted,
    OperationTimeoutError,
    PermissionDeniedError,
    ResourceNotFoundError,
    ValidationError,
    as_maintenance_error,
    classify_exception,
)
from kubemaint.core.errors.signals import INTERRUPT_SIGNALS, get_signal_name

__all__ = [
    "DEFAULT_PERMANENT_KINDS",
    "INTERRUPTED_EXIT_CODE",
    "ErrorKind",
    "PermanentFailureClassifier",
    "RetryDelays",
    "AuthError",
    "CircuitOpenError",
    "ConfigError",
    "ExternalToolError",
    "MaintenanceError",
    "NetworkError",
    "OperationInterrupted",
    "OperationTimeoutError",
    "PermissionDeniedError",
    "ResourceNotFoundError",
    "ValidationError",
    "as_maintenance_error",
    "classify_exception",
    "INTERRUPT_SIGNALS",
    "get_signal_name",
]
