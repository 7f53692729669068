"""Validate command for the kubemaint CLI.

Checks a configuration file in two layers: YAML syntax, then the pydantic
schema. Exit codes follow the error taxonomy so scripts can branch on them:

  0: Valid
  2: Cannot validate (file unreadable, YAML unparseable)
  7: Schema validation failed
"""

from __future__ import annotations

from pathlib import Path

import pydantic
import typer
import yaml

from kubemaint.core.config import MaintenanceConfig
from kubemaint.core.errors import ErrorKind

from ..output import console, create_simple_table, output_error


def validate(
    config_file: Path = typer.Argument(..., help="Path to YAML configuration file"),
) -> None:
    """Validate a kubemaint configuration file."""
    try:
        raw_yaml = config_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        output_error(f"Cannot read config file: {e}", kind=ErrorKind.CONFIG)
        raise typer.Exit(ErrorKind.CONFIG.exit_code) from None

    try:
        data = yaml.safe_load(raw_yaml)
    except yaml.YAMLError as e:
        output_error(f"YAML syntax error: {e}", kind=ErrorKind.CONFIG)
        raise typer.Exit(ErrorKind.CONFIG.exit_code) from None

    try:
        config = MaintenanceConfig.model_validate(data or {})
    except pydantic.ValidationError as e:
        output_error(
            f"Schema validation failed ({e.error_count()} error(s))",
            kind=ErrorKind.VALIDATION,
            hints=[
                f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            ],
        )
        raise typer.Exit(ErrorKind.VALIDATION.exit_code) from None

    console.print(f"\nValidating [cyan]{config_file}[/cyan]...")
    console.print("[green]✓[/green] YAML syntax valid")
    console.print("[green]✓[/green] Schema validation passed")
    console.print()

    summary = create_simple_table()
    summary.add_row("Environment", config.environment.value)
    summary.add_row("Cluster", config.cluster.name)
    summary.add_row("Excluded namespaces", ", ".join(config.excluded_namespaces))
    summary.add_row("Drain timeout", f"{config.timeouts.drain_timeout}s")
    summary.add_row("Confirmation required", "yes" if config.confirmation_required else "no")
    console.print(summary)
