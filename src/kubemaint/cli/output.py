"""Rich output formatting for the kubemaint CLI.

Centralizes colors, tables and error messages so every command renders
breaker states, pods and failures the same way.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Literal

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kubemaint.cluster.health import Severity
from kubemaint.core.errors import ErrorKind
from kubemaint.execution.circuit_breaker import CircuitState

if TYPE_CHECKING:
    from kubemaint.cluster.cleanup import Candidate, CleanupResult
    from kubemaint.cluster.health import HealthReport, NodeUsage
    from kubemaint.cluster.nodes import NodeCapacity, NodeDetails, PendingPod
    from kubemaint.execution.circuit_breaker import CircuitBreakerSnapshot

# =============================================================================
# Shared console instance
# =============================================================================

console = Console()


# =============================================================================
# Color schemes
# =============================================================================


class StatusColors:
    """Color mappings for circuit breaker states and health severities."""

    CIRCUIT_STATE: dict[CircuitState, str] = {
        CircuitState.CLOSED: "green",
        CircuitState.HALF_OPEN: "yellow",
        CircuitState.OPEN: "red",
    }

    SEVERITY: dict[Severity, str] = {
        Severity.OK: "green",
        Severity.WARNING: "yellow",
        Severity.CRITICAL: "red",
    }

    @classmethod
    def get_circuit_color(cls, state: CircuitState) -> str:
        return cls.CIRCUIT_STATE.get(state, "white")

    @classmethod
    def get_severity_color(cls, severity: Severity) -> str:
        return cls.SEVERITY.get(severity, "white")


# =============================================================================
# Formatting
# =============================================================================


def format_duration(seconds: float | None) -> str:
    """Format a duration in seconds as a short human-readable string."""
    if seconds is None:
        return "-"
    if seconds < 60:
        return f"{seconds:.0f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s" if secs else f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


# =============================================================================
# Table builders
# =============================================================================


def create_breakers_table(
    snapshots: Sequence[CircuitBreakerSnapshot],
    title: str = "Circuit Breakers",
) -> Table:
    """Table of circuit breaker snapshots, one row per service."""
    table = Table(title=title)
    table.add_column("Service", style="cyan")
    table.add_column("State")
    table.add_column("Failures", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Reset after", justify="right")
    for snap in snapshots:
        color = StatusColors.get_circuit_color(snap.state)
        table.add_row(
            snap.name,
            f"[{color}]{snap.state.value}[/{color}]",
            str(snap.failure_count),
            str(snap.failure_threshold),
            format_duration(snap.reset_timeout),
        )
    return table


def create_pending_pods_table(pods: Sequence[PendingPod]) -> Table:
    table = Table(title="Pending Pods")
    table.add_column("Pod", style="cyan")
    table.add_column("Reason", style="yellow")
    table.add_column("Message")
    table.add_column("Node")
    table.add_column("Created", style="dim")
    for pod in pods:
        table.add_row(
            f"{pod.namespace}/{pod.name}",
            pod.reason,
            pod.message,
            pod.node or "Unassigned",
            pod.created or "-",
        )
    return table


def create_simple_table(show_header: bool = False) -> Table:
    """Borderless two-column key/value table."""
    table = Table(show_header=show_header, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value")
    return table


def create_node_details_table(details: NodeDetails) -> Table:
    """Conditions of one node, one row per condition type."""
    table = Table(title=f"Node {details.name}")
    table.add_column("Condition", style="cyan")
    table.add_column("Status")
    table.add_column("Message")
    for condition in details.conditions:
        # Ready should be True; pressure conditions should be False
        healthy = condition.status == ("True" if condition.type == "Ready" else "False")
        color = "green" if healthy else "red"
        table.add_row(
            condition.type,
            f"[{color}]{condition.status}[/{color}]",
            escape(condition.message),
        )
    return table


_CAPACITY_RESOURCES = ("cpu", "memory", "pods", "ephemeral-storage")


def create_capacity_table(capacities: Sequence[NodeCapacity]) -> Table:
    """Capacity and allocatable amounts per node."""
    table = Table(title="Node Capacity")
    table.add_column("Node", style="cyan")
    for resource in _CAPACITY_RESOURCES:
        table.add_column(resource, justify="right")
    for node in capacities:
        table.add_row(
            node.name,
            *(
                f"{node.allocatable.get(r, '-')} / {node.capacity.get(r, '-')}"
                for r in _CAPACITY_RESOURCES
            ),
        )
    table.caption = "allocatable / capacity"
    return table


def create_usage_table(usage: Sequence[NodeUsage]) -> Table:
    table = Table(title="Resource Utilization")
    table.add_column("Node", style="cyan")
    table.add_column("CPU", justify="right")
    table.add_column("CPU %", justify="right")
    table.add_column("Memory", justify="right")
    table.add_column("Memory %", justify="right")
    for row in usage:
        cpu_color = StatusColors.get_severity_color(row.cpu_severity)
        mem_color = StatusColors.get_severity_color(row.memory_severity)
        table.add_row(
            row.name,
            row.cpu,
            f"[{cpu_color}]{row.cpu_percent}%[/{cpu_color}]",
            row.memory,
            f"[{mem_color}]{row.memory_percent}%[/{mem_color}]",
        )
    return table


def create_health_table(report: HealthReport) -> Table:
    """One-line-per-check summary of a health report."""
    table = create_simple_table()
    table.add_row("Nodes ready", f"{report.ready_count}/{len(report.nodes)}")
    if report.not_ready:
        table.add_row("Not ready", f"[red]{', '.join(report.not_ready)}[/red]")
    for node, count in report.pods_per_node.items():
        table.add_row(f"Pods on {node}", str(count))
    table.add_row("Problem pods", str(len(report.problem_pods)))
    for pod in report.problem_pods:
        table.add_row("", f"[yellow]{escape(pod.qualified_name)}[/yellow] {escape(pod.status)}")
    if report.system_pods_down:
        table.add_row("System pods down", f"[red]{', '.join(report.system_pods_down)}[/red]")
    if report.unbound_volumes:
        table.add_row("Unbound volumes", f"[yellow]{', '.join(report.unbound_volumes)}[/yellow]")
    table.add_row("Volume claims", str(len(report.claims)))
    if report.storage_classes is not None:
        table.add_row("Storage classes", str(report.storage_classes))
    for check, reason in report.skipped.items():
        table.add_row(f"Skipped: {check}", f"[dim]{escape(reason)}[/dim]")
    return table


def create_cleanup_table(candidates: Sequence[Candidate], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Resource", style="cyan")
    table.add_column("Kind")
    table.add_column("Detail", style="dim")
    for candidate in candidates:
        table.add_row(escape(candidate.qualified_name), candidate.kind, escape(candidate.detail))
    return table


def create_cleanup_summary(results: Sequence[CleanupResult]) -> Table:
    table = Table(title="Cleanup Summary")
    table.add_column("Target", style="cyan")
    table.add_column("Found", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Failed", justify="right")
    for result in results:
        failed = f"[red]{result.failed}[/red]" if result.failed else "0"
        deleted = "cancelled" if result.cancelled else str(result.deleted)
        table.add_row(result.target.value, str(len(result.found)), deleted, failed)
    return table


# =============================================================================
# Error formatting
# =============================================================================


def output_error(
    message: str,
    *,
    kind: ErrorKind | None = None,
    hints: list[str] | None = None,
    severity: Literal["error", "warning"] = "error",
    console_instance: Console | None = None,
) -> None:
    """Print a colored error or warning with optional hints."""
    out = console_instance or console
    color = "red" if severity == "error" else "yellow"
    label = "Error" if severity == "error" else "Warning"

    if kind is not None:
        prefix = f"[{color}]{label} \\[{kind.label}]:[/{color}] "
    else:
        prefix = f"[{color}]{label}:[/{color}] "
    out.print(f"{prefix}{escape(message)}")

    if hints:
        out.print()
        out.print("[dim]Hints:[/dim]")
        for hint in hints:
            out.print(f"  - {escape(hint)}")


__all__ = [
    "StatusColors",
    "console",
    "create_breakers_table",
    "create_capacity_table",
    "create_cleanup_summary",
    "create_cleanup_table",
    "create_health_table",
    "create_node_details_table",
    "create_pending_pods_table",
    "create_simple_table",
    "create_usage_table",
    "format_duration",
    "output_error",
]
