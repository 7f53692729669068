"""Node commands: drain, cordon, uncordon, pending-pods, node-info, capacity.

Each command builds a fresh runtime and hands its work to CommandRunner,
so rollback and cleanup run on every exit path and the process exit code
is the failure's kind.
"""

from __future__ import annotations

import typer

from kubemaint.cluster.nodes import ActionOutcome

from ..helpers import CommandRuntime, create_runtime, is_quiet
from ..output import (
    console,
    create_capacity_table,
    create_node_details_table,
    create_pending_pods_table,
    create_simple_table,
)

_OUTCOME_MESSAGES = {
    ActionOutcome.COMPLETED: "[green]✓[/green] {action} completed for node [cyan]{node}[/cyan]",
    ActionOutcome.UNCHANGED: "[dim]Node {node} needs no {action} (already in that state)[/dim]",
    ActionOutcome.CANCELLED: "[yellow]{action} of node {node} cancelled[/yellow]",
}


def _report(outcome: ActionOutcome, action: str, node: str) -> None:
    if not is_quiet():
        console.print(_OUTCOME_MESSAGES[outcome].format(action=action.capitalize(), node=node))


def _drain(runtime: CommandRuntime, node: str, force: bool) -> None:
    outcome = runtime.node_manager(console).drain_node(node, force=force)
    _report(outcome, "drain", node)


def _cordon(runtime: CommandRuntime, node: str, action: str, force: bool) -> None:
    outcome = runtime.node_manager(console).cordon_node(node, action=action, force=force)
    _report(outcome, action, node)


def _pending_pods(runtime: CommandRuntime) -> None:
    pods = runtime.node_manager(console).check_pending_pods()
    if not pods:
        console.print("[green]✓[/green] No pending pods found")
        return
    console.print(f"[yellow]Found {len(pods)} pending pod(s)[/yellow]")
    console.print(create_pending_pods_table(pods))


def drain(
    node: str = typer.Argument(..., help="Name of the node to drain"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip the confirmation prompt"),
) -> None:
    """Cordon and drain a node, uncordoning it again if anything fails."""
    runtime = create_runtime(console)
    raise typer.Exit(runtime.runner.run("drain", _drain, runtime, node, force))


def cordon(
    node: str = typer.Argument(..., help="Name of the node to cordon"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip the confirmation prompt"),
) -> None:
    """Mark a node unschedulable."""
    runtime = create_runtime(console)
    raise typer.Exit(runtime.runner.run("cordon", _cordon, runtime, node, "cordon", force))


def uncordon(
    node: str = typer.Argument(..., help="Name of the node to uncordon"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip the confirmation prompt"),
) -> None:
    """Mark a node schedulable again."""
    runtime = create_runtime(console)
    raise typer.Exit(runtime.runner.run("uncordon", _cordon, runtime, node, "uncordon", force))


def pending_pods() -> None:
    """List pods stuck in the Pending phase, with their latest condition."""
    runtime = create_runtime(console)
    raise typer.Exit(runtime.runner.run("pending-pods", _pending_pods, runtime))


def _node_info(runtime: CommandRuntime, node: str) -> None:
    details = runtime.node_manager(console).node_details(node)
    console.print(create_node_details_table(details))
    summary = create_simple_table()
    summary.add_row("Ready", "[green]yes[/green]" if details.ready else "[red]no[/red]")
    summary.add_row("Schedulable", "no (cordoned)" if details.unschedulable else "yes")
    summary.add_row("Taints", ", ".join(details.taints) or "none")
    for key, value in sorted(details.labels.items()):
        summary.add_row(f"Label {key}", value)
    console.print(summary)


def _capacity(runtime: CommandRuntime, node: str | None) -> None:
    console.print(create_capacity_table(runtime.node_manager(console).node_capacity(node)))


def node_info(node: str = typer.Argument(..., help="Name of the node to describe")) -> None:
    """Show a node's conditions, taints and labels."""
    runtime = create_runtime(console)
    raise typer.Exit(runtime.runner.run("node-info", _node_info, runtime, node))


def capacity(
    node: str | None = typer.Argument(None, help="Node to report on (default: every node)"),
) -> None:
    """Show allocatable and total capacity per node."""
    runtime = create_runtime(console)
    raise typer.Exit(runtime.runner.run("capacity", _capacity, runtime, node))
