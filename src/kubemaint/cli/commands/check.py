"""Cluster readiness and circuit breaker commands."""

from __future__ import annotations

import typer

from kubemaint.cluster.prerequisites import check_prerequisites
from kubemaint.execution.lifecycle import validate_error_handling

from ..helpers import CommandRuntime, create_runtime, is_quiet, is_verbose
from ..output import console, create_breakers_table, create_simple_table, format_duration


def _check(runtime: CommandRuntime) -> None:
    report = check_prerequisites(runtime.kubectl, runtime.supervisor)
    for issue in validate_error_handling(runtime.context):
        console.print(f"[yellow]Warning:[/yellow] {issue}")
    if is_quiet():
        return
    console.print("[green]✓[/green] Prerequisites check passed")
    console.print(f"  Server version: {report.server_version or '[dim]unknown[/dim]'}")
    if is_verbose():
        console.print(f"  Tools on PATH: {', '.join(report.tools)}")
        console.print(f"  Dry run: {'yes' if runtime.context.dry_run else 'no'}")
    console.print(create_breakers_table(runtime.context.breakers.snapshots()))


def check() -> None:
    """Verify kubectl is installed and the cluster is reachable."""
    runtime = create_runtime(console)
    raise typer.Exit(runtime.runner.run("check", _check, runtime))


def breakers() -> None:
    """Show circuit breaker and retry settings, and breaker state for this process.

    Breaker state lives only as long as one kubemaint process, so a fresh
    invocation always reports every service closed.
    """
    runtime = create_runtime(console)
    config = runtime.config

    settings = create_simple_table()
    settings.add_row("Failure threshold", str(config.circuit_breaker.failure_threshold))
    settings.add_row("Reset timeout", format_duration(config.circuit_breaker.reset_timeout_seconds))
    settings.add_row("Max attempts", str(config.retry.max_attempts))
    settings.add_row(
        "Backoff",
        f"{config.retry.initial_delay_seconds:g}s -> {config.retry.max_delay_seconds:g}s "
        f"(±{config.retry.jitter_factor:.0%} jitter)",
    )
    settings.add_row("Never retried", ", ".join(sorted(config.retry.permanent_kinds)))
    console.print(settings)

    runtime.context.initialize()
    console.print(create_breakers_table(runtime.context.breakers.snapshots()))
