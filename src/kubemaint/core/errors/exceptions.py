"""Exception hierarchy for kubemaint.

All kubemaint exceptions inherit from MaintenanceError, which carries the
ErrorKind that decides retry eligibility and the process exit code.
Callers can catch broad (MaintenanceError) or narrow (e.g.,
ResourceNotFoundError).
"""

from __future__ import annotations

import subprocess

from kubemaint.core.errors.codes import ErrorKind


class MaintenanceError(Exception):
    """Base exception for all classified kubemaint failures.

    Attributes:
        kind: The failure category.
        operation: Name of the operation that failed, when known.
        attempts: Number of attempts made before giving up (set by the
            retry engine).
    """

    default_kind: ErrorKind = ErrorKind.GENERAL

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind if kind is not None else self.default_kind
        self.operation = operation
        self.attempts = 0

    @property
    def exit_code(self) -> int:
        """Process exit status for this failure."""
        return self.kind.exit_code

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class ConfigError(MaintenanceError):
    """Configuration is invalid or a required tool is not installed."""

    default_kind = ErrorKind.CONFIG


class NetworkError(MaintenanceError):
    """The cluster API server could not be reached."""

    default_kind = ErrorKind.NETWORK


class AuthError(MaintenanceError):
    """The cluster rejected the configured credentials."""

    default_kind = ErrorKind.AUTH


class ExternalToolError(MaintenanceError):
    """kubectl (or another external tool) exited with a failure status.

    Attributes:
        returncode: The tool's exit status, if it ran.
        stderr: Captured standard error, truncated.
    """

    default_kind = ErrorKind.EXTERNAL_TOOL

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        operation: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, kind=kind, operation=operation)
        self.returncode = returncode
        self.stderr = stderr


class OperationTimeoutError(MaintenanceError):
    """An operation exceeded its timeout."""

    default_kind = ErrorKind.TIMEOUT


class ValidationError(MaintenanceError):
    """Caller input failed validation."""

    default_kind = ErrorKind.VALIDATION


class PermissionDeniedError(MaintenanceError):
    """The caller is not allowed to perform the operation."""

    default_kind = ErrorKind.PERMISSION


class ResourceNotFoundError(MaintenanceError):
    """A named cluster resource does not exist."""

    default_kind = ErrorKind.NOT_FOUND


class CircuitOpenError(MaintenanceError):
    """A call was rejected because the service's circuit breaker is open.

    Attributes:
        service: The guarded service name.
        retry_after: Seconds until a half-open probe will be allowed.
    """

    default_kind = ErrorKind.CIRCUIT_OPEN

    def __init__(self, service: str, retry_after: float | None = None) -> None:
        if retry_after is None:
            message = f"circuit breaker for {service!r} is open"
        else:
            message = (
                f"circuit breaker for {service!r} is open "
                f"(retry in {retry_after:.0f}s)"
            )
        super().__init__(message)
        self.service = service
        self.retry_after = retry_after


class OperationInterrupted(Exception):
    """Raised from a signal handler when SIGTERM or SIGHUP arrives.

    Not a MaintenanceError: interrupts must never be caught by the retry
    engine.
    """

    def __init__(self, signum: int) -> None:
        super().__init__(f"interrupted by signal {signum}")
        self.signum = signum


_KIND_TO_EXCEPTION: dict[ErrorKind, type[MaintenanceError]] = {
    ErrorKind.GENERAL: MaintenanceError,
    ErrorKind.CONFIG: ConfigError,
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.AUTH: AuthError,
    ErrorKind.EXTERNAL_TOOL: ExternalToolError,
    ErrorKind.TIMEOUT: OperationTimeoutError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.PERMISSION: PermissionDeniedError,
    ErrorKind.NOT_FOUND: ResourceNotFoundError,
}


def classify_exception(exc: BaseException) -> ErrorKind:
    """Resolve any exception to exactly one ErrorKind.

    Args:
        exc: The exception raised by a unit of work.

    Returns:
        The exception's kind. Unrecognized exceptions are GENERAL.
    """
    if isinstance(exc, MaintenanceError):
        return exc.kind
    if isinstance(exc, (subprocess.TimeoutExpired, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, PermissionError):
        return ErrorKind.PERMISSION
    if isinstance(exc, FileNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, ConnectionError):
        return ErrorKind.NETWORK
    if isinstance(exc, subprocess.CalledProcessError):
        return ErrorKind.EXTERNAL_TOOL
    return ErrorKind.GENERAL


def as_maintenance_error(exc: BaseException, operation: str | None = None) -> MaintenanceError:
    """Wrap a foreign exception in the MaintenanceError subclass for its kind.

    MaintenanceErrors pass through unchanged (their operation is filled in
    if it was not set).
    """
    if isinstance(exc, MaintenanceError):
        if exc.operation is None:
            exc.operation = operation
        return exc
    kind = classify_exception(exc)
    error_cls = _KIND_TO_EXCEPTION.get(kind, MaintenanceError)
    message = str(exc) or type(exc).__name__
    wrapped = error_cls(message, kind=kind, operation=operation)
    wrapped.__cause__ = exc
    return wrapped
