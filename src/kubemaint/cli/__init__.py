"""kubemaint command line interface.

The Typer app is assembled here. Global options are parsed by the app
callback, which runs before every command and records output verbosity,
logging settings and runtime toggles in ``helpers``; commands then build
their own runtime from that state.

Layout:
    cli/
    ├── __init__.py       # app, global options, command registration
    ├── helpers.py        # option state, logging setup, runtime factory
    ├── output.py         # rich console, tables, error rendering
    └── commands/
        ├── check.py      # check, breakers
        ├── cleanup.py    # cleanup
        ├── health.py     # health
        ├── nodes.py      # drain, cordon, uncordon, pending-pods, node-info, capacity
        └── validate.py   # validate
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from kubemaint import __version__

# Re-export helpers so tests can reach module state through kubemaint.cli
from . import helpers as helpers
from .commands import (
    breakers,
    capacity,
    check,
    cleanup,
    cordon,
    drain,
    health,
    node_info,
    pending_pods,
    uncordon,
    validate,
)
from .helpers import apply_global_options, configure_global_logging
from .output import console

app = typer.Typer(
    name="kubemaint",
    help="Resilient Kubernetes maintenance through kubectl: node drains, health checks, cleanup.",
    add_completion=False,
)


def _show_version(value: bool) -> None:
    if not value:
        return
    console.print(f"kubemaint v{__version__}")
    raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version", "-V", callback=_show_version, is_eager=True, help="Print the version"
        ),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Print pod listings and extra detail")
    ] = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Print errors and prompts only")
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level", "-L", envvar="KUBEMAINT_LOG_LEVEL",
            help="Structured log threshold: DEBUG, INFO, WARNING or ERROR",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file", envvar="KUBEMAINT_LOG_FILE",
            help="Write JSON log lines to this file (rotated at 10 MB)",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format", envvar="KUBEMAINT_LOG_FORMAT",
            help="console, json, or both (both needs --log-file)",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config", "-c", envvar="KUBEMAINT_CONFIG",
            help="YAML configuration file (default: ./kubemaint.yaml or ./configs/kubemaint.yaml)",
        ),
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Log cluster mutations instead of running them")
    ] = False,
    debug: Annotated[
        bool, typer.Option("--debug", help="Debug logging unless --log-level is given")
    ] = False,
) -> None:
    """kubemaint - resilient Kubernetes node maintenance."""
    if verbose and quiet:
        console.print("[red]Error:[/red] --verbose and --quiet cannot be combined")
        raise typer.Exit(2)
    apply_global_options(
        verbose=verbose,
        quiet=quiet,
        log_level=log_level,
        log_file=log_file,
        log_format=log_format,
        config_path=config,
        dry_run=dry_run,
        debug=debug,
    )
    configure_global_logging(console)


app.command()(check)
app.command()(breakers)
app.command()(drain)
app.command()(cordon)
app.command()(uncordon)
app.command(name="pending-pods")(pending_pods)
app.command(name="node-info")(node_info)
app.command()(capacity)
app.command()(health)
app.command()(cleanup)
app.command()(validate)


__all__ = ["app"]
