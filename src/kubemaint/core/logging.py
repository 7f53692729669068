"""Structured logging for kubemaint, built on structlog.

Log events are named ``component.event`` (``circuit_breaker.state_changed``,
``rollback.action_failed``) and carry key/value context. Lines emitted
while a command runs are stamped with that run's OperationContext so one
drain can be followed across the supervisor, retry engine and rollback
stack.

Three outputs are supported:

- ``console``: colored, human-readable lines on stderr (the CLI default)
- ``json``: one JSON object per line, to a file or stdout
- ``both``: console on stderr plus JSON lines in a rotating file

Each handler renders through its own structlog ProcessorFormatter, so one
event can be colored text on the terminal and JSON in the file.

Fields whose names look like credentials are redacted before rendering.

Example usage:
    from kubemaint.core.logging import configure_logging, get_logger, with_context

    configure_logging(level="INFO")
    logger = get_logger("nodes")

    with with_context(OperationContext(command="drain", node="worker-1")):
        logger.info("nodes.drain_started", grace_period=30)
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Substrings that mark a field as sensitive (matched case-insensitively)
SENSITIVE_PATTERNS = frozenset({
    "token",
    "secret",
    "password",
    "credential",
    "bearer",
    "authorization",
    "client-key",
    "client_key",
    "kubeconfig_data",
})

REDACTED = "[REDACTED]"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console", "both"]

_current_log_path: Path | None = None


def get_current_log_path() -> Path | None:
    """Path of the active log file, or None when logging only to a stream."""
    return _current_log_path


# =============================================================================
# Run context
# =============================================================================


@dataclass(frozen=True)
class OperationContext:
    """Correlation fields stamped onto every line logged during one command.

    Attributes:
        command: CLI command being executed (e.g., "drain").
        run_id: Short random id, unique per kubemaint invocation.
        node: Node under maintenance, if any.
        operation: Supervised operation currently running, if any.
    """

    command: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    node: str | None = None
    operation: str | None = None

    def with_operation(self, operation: str) -> OperationContext:
        return replace(self, operation=operation)

    def with_node(self, node: str) -> OperationContext:
        return replace(self, node=node)

    def to_dict(self) -> dict[str, Any]:
        """The fields that are set, in a stable order."""
        fields = {
            "command": self.command,
            "run_id": self.run_id,
            "node": self.node,
            "operation": self.operation,
        }
        return {key: value for key, value in fields.items() if value is not None}


_active_context: ContextVar[OperationContext | None] = ContextVar(
    "kubemaint_operation_context", default=None
)


def get_current_context() -> OperationContext | None:
    return _active_context.get()


@contextmanager
def with_context(ctx: OperationContext) -> Iterator[OperationContext]:
    """Make ``ctx`` the active OperationContext inside the block."""
    token = _active_context.set(ctx)
    try:
        yield ctx
    finally:
        _active_context.reset(token)


@contextmanager
def narrowed_context(
    node: str | None = None, operation: str | None = None
) -> Iterator[OperationContext | None]:
    """Narrow the active OperationContext to one node or operation inside the block.

    Outside a command there is nothing to narrow and the block runs as is.
    """
    ctx = get_current_context()
    if ctx is None:
        yield None
        return
    if node is not None:
        ctx = ctx.with_node(node)
    if operation is not None:
        ctx = ctx.with_operation(operation)
    with with_context(ctx):
        yield ctx


# =============================================================================
# Processors
# =============================================================================


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(pattern in lowered for pattern in SENSITIVE_PATTERNS)


def _redact(value: Any, depth: int = 0) -> Any:
    """Redact sensitive keys in nested dicts and lists (bounded depth)."""
    if depth > 3:
        return value
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(str(k)) else _redact(v, depth + 1)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact(item, depth + 1) for item in value]
    return value


def redact_sensitive(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace the values of credential-like fields with ``[REDACTED]``."""
    redacted: EventDict = _redact(event_dict)
    return redacted


def merge_operation_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add the active OperationContext; explicitly passed keys win."""
    ctx = _active_context.get()
    if ctx is None:
        return event_dict
    return {**ctx.to_dict(), **event_dict}


def _shared_processors(include_timestamps: bool) -> list[Processor]:
    chain: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        merge_operation_context,
        redact_sensitive,
    ]
    if include_timestamps:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    chain += [
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    return chain


# =============================================================================
# Component logger
# =============================================================================


class KubemaintLogger:
    """Logger bound to one component name plus optional fixed fields.

    structlog is looked up on every call, so module-level loggers created
    at import time pick up a configure_logging() that happens later.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._fields: dict[str, Any] = {"component": component, **initial_context}

    @property
    def component(self) -> str:
        return str(self._fields["component"])

    def bind(self, **context: Any) -> KubemaintLogger:
        """A new logger carrying extra fixed fields."""
        fields = {**self._fields, **context}
        component = fields.pop("component")
        return KubemaintLogger(component, **fields)

    def _emit(self, method: str, event: str, kw: dict[str, Any]) -> None:
        bound = structlog.get_logger().bind(**self._fields)
        getattr(bound, method)(event, **kw)

    def debug(self, event: str, **kw: Any) -> None:
        self._emit("debug", event, kw)

    def info(self, event: str, **kw: Any) -> None:
        self._emit("info", event, kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._emit("warning", event, kw)

    def error(self, event: str, **kw: Any) -> None:
        self._emit("error", event, kw)

    def critical(self, event: str, **kw: Any) -> None:
        self._emit("critical", event, kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at ERROR with the traceback of the exception being handled."""
        self._emit("exception", event, kw)


def get_logger(component: str, **initial_context: Any) -> KubemaintLogger:
    """Logger for a kubemaint component (e.g. "supervisor", "nodes")."""
    return KubemaintLogger(component, **initial_context)


# =============================================================================
# Configuration
# =============================================================================


def _formatter(renderer: Processor) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def _build_handlers(
    format: LogFormat,  # noqa: A002
    file_path: Path | None,
    max_bytes: int,
    backup_count: int,
) -> list[logging.Handler]:
    """One handler per destination, each with its own renderer."""
    handlers: list[logging.Handler] = []
    if format in ("console", "both"):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(_formatter(structlog.dev.ConsoleRenderer(colors=True)))
        handlers.append(stream)
    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            file_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_renderer: Processor = (
            structlog.dev.ConsoleRenderer(colors=False)
            if format == "console"
            else structlog.processors.JSONRenderer()
        )
        rotating.setFormatter(_formatter(file_renderer))
        handlers.append(rotating)
    elif format == "json":
        stdout = logging.StreamHandler(sys.stdout)
        stdout.setFormatter(_formatter(structlog.processors.JSONRenderer()))
        handlers.append(stdout)
    return handlers


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
    include_timestamps: bool = True,
) -> None:
    """Route structlog through the stdlib root logger.

    Safe to call again; each call replaces the previous handlers.

    Args:
        level: Minimum log level to capture.
        format: "console", "json" or "both" (see module docstring).
        file_path: Log file. Required for "both"; with "json" it replaces stdout.
        max_file_size_mb: Size at which the log file rotates.
        backup_count: Number of rotated log files to keep.
        include_timestamps: Add an ISO-8601 UTC ``timestamp`` field.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    global _current_log_path

    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    numeric_level = logging.getLevelName(level)
    handlers = _build_handlers(format, file_path, max_file_size_mb * 1024 * 1024, backup_count)
    _current_log_path = file_path

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(numeric_level)
    for handler in handlers:
        handler.setLevel(numeric_level)
        root.addHandler(handler)

    structlog.configure(
        processors=[
            *_shared_processors(include_timestamps),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


__all__ = [
    "KubemaintLogger",
    "LogFormat",
    "LogLevel",
    "OperationContext",
    "REDACTED",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_current_context",
    "get_current_log_path",
    "get_logger",
    "merge_operation_context",
    "redact_sensitive",
    "narrowed_context",
    "with_context",
]
