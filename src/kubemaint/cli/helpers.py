"""Shared utilities for kubemaint CLI commands.

This module contains helpers used across multiple CLI command modules:
- Output level and logging configuration from global options
- Runtime toggles (--config, --dry-run, --debug, --force)
- Construction of the per-command runtime (config, resilience context,
  kubectl client, supervisor, command runner)

Global state lives in module-level dataclasses so the Typer callback can
record options once and every command can read them.
"""

from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal

import typer
from rich.console import Console
from rich.markup import escape

from kubemaint.cluster.cleanup import ResourceCleaner
from kubemaint.cluster.health import HealthChecker
from kubemaint.cluster.kubectl import KubectlClient, Runner
from kubemaint.cluster.nodes import NodeManager
from kubemaint.cluster.prompts import Prompter
from kubemaint.core.config import MaintenanceConfig, RuntimeToggles
from kubemaint.core.constants import SERVICE_ACCOUNT_TOKEN_ENV
from kubemaint.core.errors import ConfigError
from kubemaint.core.logging import configure_logging, get_logger
from kubemaint.execution.lifecycle import CommandRunner
from kubemaint.execution.retry import Sleep
from kubemaint.execution.supervisor import OperationSupervisor, ResilienceContext

_logger = get_logger("cli")


# =============================================================================
# Output level management
# =============================================================================


class OutputLevel(str, Enum):
    """Output verbosity level."""

    QUIET = "quiet"  # Minimal output (errors only)
    NORMAL = "normal"  # Default output
    VERBOSE = "verbose"  # Detailed output


_output_level: OutputLevel = OutputLevel.NORMAL


def get_output_level() -> OutputLevel:
    return _output_level


def set_output_level(level: OutputLevel) -> None:
    global _output_level
    _output_level = level


def is_verbose() -> bool:
    return _output_level == OutputLevel.VERBOSE


def is_quiet() -> bool:
    return _output_level == OutputLevel.QUIET


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """CLI logging configuration collected from global options."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    level_explicit: bool = False
    file: Path | None = None
    format: Literal["json", "console", "both"] = "console"
    configured: bool = False


_log_config = CliLoggingConfig()


def get_log_level() -> str:
    return _log_config.level


def set_log_level(level: str) -> None:
    """Set the log level.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
    """
    _log_config.level = level.upper()  # type: ignore[assignment]
    _log_config.level_explicit = True


def get_log_file() -> Path | None:
    return _log_config.file


def set_log_file(path: Path | None) -> None:
    """Send structured logs to ``path`` as JSON lines.

    Rich CLI output (tables, colored messages) still goes to the console.
    """
    _log_config.file = path
    if path:
        _log_config.format = "json"


def get_log_format() -> str:
    return _log_config.format


def set_log_format(fmt: str) -> None:
    _log_config.format = fmt  # type: ignore[assignment]


def configure_global_logging(console: Console) -> None:
    """Configure logging from the global CLI options, once per session.

    Raises:
        typer.Exit: If logging configuration fails.
    """
    if _log_config.configured:
        return

    level = _log_config.level
    if _session.toggles.debug and not _log_config.level_explicit:
        level = "DEBUG"

    try:
        configure_logging(level=level, format=_log_config.format, file_path=_log_config.file)
        _log_config.configured = True
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def reset_logging_state() -> None:
    """Reset logging state (primarily for testing)."""
    global _log_config
    _log_config = CliLoggingConfig()


# =============================================================================
# Session state (global options other than logging)
# =============================================================================


@dataclass
class CliSession:
    """Options recorded by the Typer callback for every command."""

    config_path: Path | None = None
    toggles: RuntimeToggles = field(default_factory=RuntimeToggles)


_session = CliSession()

KUBECTL_TOKEN_SECRET = "kubectl_token"
"""Name under which the service account token is held in TempResources."""

# Seams replaced by tests
_kubectl_runner: Runner = subprocess.run
_sleep: Sleep = time.sleep


def get_session() -> CliSession:
    return _session


def set_session(config_path: Path | None, toggles: RuntimeToggles) -> None:
    _session.config_path = config_path
    _session.toggles = toggles


def reset_session_state() -> None:
    """Reset session options and test seams (primarily for testing)."""
    global _session, _kubectl_runner, _sleep
    _session = CliSession()
    _kubectl_runner = subprocess.run
    _sleep = time.sleep


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
_LOG_FORMATS = ("console", "json", "both")


def apply_global_options(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_level: str | None = None,
    log_file: Path | None = None,
    log_format: str | None = None,
    config_path: Path | None = None,
    dry_run: bool = False,
    debug: bool = False,
) -> None:
    """Record the app callback's options for the command about to run.

    Raises:
        typer.BadParameter: If the log level or format is not recognized.
    """
    if log_level is not None and log_level.upper() not in _LOG_LEVELS:
        raise typer.BadParameter(
            f"expected one of {', '.join(_LOG_LEVELS)}", param_hint="--log-level"
        )
    if log_format is not None and log_format not in _LOG_FORMATS:
        raise typer.BadParameter(
            f"expected one of {', '.join(_LOG_FORMATS)}", param_hint="--log-format"
        )

    if verbose:
        set_output_level(OutputLevel.VERBOSE)
    elif quiet:
        set_output_level(OutputLevel.QUIET)
    if log_level:
        set_log_level(log_level)
    if log_file:
        set_log_file(log_file)
    if log_format:
        set_log_format(log_format)

    # Flags can only switch a toggle on; the environment supplies the rest
    toggles = RuntimeToggles.from_env().override(
        debug=True if debug else None,
        dry_run=True if dry_run else None,
    )
    set_session(config_path, toggles)


# =============================================================================
# Runtime construction
# =============================================================================


@dataclass
class CommandRuntime:
    """Everything one command needs, built fresh per invocation."""

    config: MaintenanceConfig
    context: ResilienceContext
    supervisor: OperationSupervisor
    kubectl: KubectlClient
    runner: CommandRunner
    force: bool = False

    def node_manager(self, console: Console) -> NodeManager:
        return NodeManager(
            self.kubectl,
            self.supervisor,
            self.config,
            prompter=self._prompter(console),
            console=None if is_quiet() else console,
            force=self.force,
        )

    def health_checker(self) -> HealthChecker:
        return HealthChecker(self.kubectl, self.supervisor, self.config)

    def cleaner(self, console: Console) -> ResourceCleaner:
        return ResourceCleaner(
            self.kubectl,
            self.supervisor,
            self.config,
            prompter=self._prompter(console),
            force=self.force,
        )

    def _prompter(self, console: Console) -> Prompter:
        return Prompter(console=console, timeout=self.config.timeouts.confirmation_timeout)


def load_config(console: Console) -> MaintenanceConfig:
    """Load the session's configuration, exiting with CONFIG on failure."""
    try:
        return MaintenanceConfig.load(_session.config_path)
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {escape(str(e))}")
        raise typer.Exit(e.exit_code) from None


def create_runtime(console: Console) -> CommandRuntime:
    """Build config, resilience context, kubectl client and runner for a command.

    A bearer token in $K8S_SERVICE_ACCOUNT_TOKEN is passed to kubectl until
    the command's cleanup runs.
    """
    config = load_config(console)
    toggles = _session.toggles
    context = ResilienceContext.from_config(config, toggles)
    token = os.environ.get(SERVICE_ACCOUNT_TOKEN_ENV)
    if token:
        # Held on the context so cleanup forgets it when the command ends
        context.temp.hold_secret(KUBECTL_TOKEN_SECRET, token)
    kubectl = KubectlClient(
        timeout=config.timeouts.kubectl_timeout,
        context=config.cluster.context,
        runner=_kubectl_runner,
        token=lambda: context.temp.secret(KUBECTL_TOKEN_SECRET),
    )
    _logger.debug(
        "cli.runtime_created",
        config_path=str(_session.config_path) if _session.config_path else None,
        environment=config.environment.value,
        dry_run=toggles.dry_run,
        service_account=bool(token),
    )
    if toggles.dry_run and not is_quiet():
        console.print("[yellow]DRY RUN:[/yellow] cluster mutations will be logged, not executed")
    return CommandRuntime(
        config=config,
        context=context,
        supervisor=OperationSupervisor(context, sleep=_sleep),
        kubectl=kubectl,
        runner=CommandRunner(context, console=console),
        force=toggles.force,
    )


__all__ = [
    "CliLoggingConfig",
    "CliSession",
    "CommandRuntime",
    "apply_global_options",
    "OutputLevel",
    "configure_global_logging",
    "create_runtime",
    "get_log_file",
    "get_log_format",
    "get_log_level",
    "get_output_level",
    "get_session",
    "is_quiet",
    "is_verbose",
    "load_config",
    "reset_logging_state",
    "reset_session_state",
    "set_log_file",
    "set_log_format",
    "set_log_level",
    "set_output_level",
    "set_session",
]
