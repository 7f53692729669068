"""Cleanup of evicted pods and finished jobs."""

from __future__ import annotations

import typer

from kubemaint.cluster.cleanup import CleanupTarget

from ..helpers import CommandRuntime, create_runtime, is_quiet
from ..output import console, create_cleanup_summary, create_cleanup_table


def _cleanup(
    runtime: CommandRuntime,
    targets: list[CleanupTarget],
    retention_days: int | None,
    force: bool,
) -> None:
    cleaner = runtime.cleaner(console)
    results = []
    for target in targets:
        candidates = cleaner.find(target, retention_days)
        if candidates and not is_quiet():
            console.print(create_cleanup_table(candidates, title=target.value.replace("-", " ")))
        results.append(cleaner.clean(target, candidates, force=force))

    if not any(result.found for result in results):
        console.print("[green]✓[/green] Nothing to clean up")
        return
    console.print(create_cleanup_summary(results))


def cleanup(
    evicted_pods: bool = typer.Option(False, "--evicted-pods", help="Delete evicted pods"),
    completed_jobs: bool = typer.Option(
        False, "--completed-jobs", help="Delete jobs completed before the retention period"
    ),
    failed_jobs: bool = typer.Option(False, "--failed-jobs", help="Delete failed jobs"),
    retention_days: int | None = typer.Option(
        None,
        "--retention-days",
        min=1,
        max=365,
        help="Age in days after which completed jobs are deleted (default: from config)",
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Skip the confirmation prompts"),
) -> None:
    """Delete evicted pods and finished jobs outside the excluded namespaces.

    With no target flags, every target is cleaned.
    """
    selected = {
        CleanupTarget.EVICTED_PODS: evicted_pods,
        CleanupTarget.COMPLETED_JOBS: completed_jobs,
        CleanupTarget.FAILED_JOBS: failed_jobs,
    }
    targets = [target for target, chosen in selected.items() if chosen] or list(CleanupTarget)
    runtime = create_runtime(console)
    raise typer.Exit(
        runtime.runner.run("cleanup", _cleanup, runtime, targets, retention_days, force)
    )
