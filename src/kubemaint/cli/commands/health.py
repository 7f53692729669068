"""Cluster health report command."""

from __future__ import annotations

import typer

from kubemaint.core.errors import MaintenanceError

from ..helpers import CommandRuntime, create_runtime, is_quiet
from ..output import console, create_health_table, create_usage_table


def _health(runtime: CommandRuntime, strict: bool) -> None:
    report = runtime.health_checker().cluster_health_check()
    if not is_quiet():
        console.print(create_health_table(report))
        if report.usage:
            console.print(create_usage_table(report.usage))
        elif report.usage is None:
            console.print("[dim]Resource usage unavailable (is metrics-server installed?)[/dim]")

    if report.healthy:
        console.print("[green]✓[/green] Cluster healthy")
        return
    console.print("[yellow]Cluster has issues[/yellow]")
    if strict:
        raise MaintenanceError("cluster health check found issues", operation="health")


def health(
    strict: bool = typer.Option(
        False, "--strict", help="Exit non-zero when any issue is found"
    ),
) -> None:
    """Report node readiness, pod problems, resource usage and storage state."""
    runtime = create_runtime(console)
    raise typer.Exit(runtime.runner.run("health", _health, runtime, strict))
