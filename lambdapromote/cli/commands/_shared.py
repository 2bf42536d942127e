"""Helpers shared by the CLI commands: config overrides and Rich rendering."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from lambdapromote.config import PromoteConfig
from lambdapromote.core.errors import PromotionError
from lambdapromote.core.outputs import write_github_outputs
from lambdapromote.models.artifacts import ArtifactRecord
from lambdapromote.models.publish import UnitFailure
from lambdapromote.models.units import ChangeSet


def load_config(**overrides: Any) -> PromoteConfig:
    """Environment/.env config with explicit CLI options layered on top."""
    try:
        return PromoteConfig(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def print_error(console: Console, exc: PromotionError) -> None:
    where = " / ".join(p for p in (exc.unit_name, exc.step) if p)
    prefix = f"{exc.kind}" + (f" ({where})" if where else "")
    console.print(f"[bold red]{prefix}:[/bold red] {escape(str(exc))}")
    if exc.diagnostic:
        console.print(f"[dim]{escape(exc.diagnostic)}[/dim]")


def change_set_table(change_set: ChangeSet) -> Table:
    title = "Changed Units" + (" (bootstrap: base revision unresolvable)" if change_set.bootstrap else "")
    table = Table(title=title)
    table.add_column("Unit", style="cyan")
    table.add_column("Source Path")
    table.add_column("Runtime", style="green")
    for unit in change_set.changed_units:
        table.add_row(unit.name, unit.source_path, unit.function.runtime or "[dim]default[/dim]")
    return table


def records_table(records: tuple[ArtifactRecord, ...] | list[ArtifactRecord]) -> Table:
    table = Table(title="Published Artifacts")
    table.add_column("Unit", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Latest Key")
    table.add_column("Revision")
    for record in records:
        table.add_row(
            record.unit_name,
            record.version,
            record.storage_key_latest,
            record.store_revision_id or "[dim]none[/dim]",
        )
    return table


def failures_table(failures: tuple[UnitFailure, ...]) -> Table:
    table = Table(title="Failed Units", border_style="red")
    table.add_column("Unit", style="cyan")
    table.add_column("Error", style="bold red")
    table.add_column("Step")
    table.add_column("Message")
    for failure in failures:
        message = escape(failure.message)
        if failure.storage_key_versioned:
            message += f"\n[dim]versioned copy kept: {failure.storage_key_versioned}[/dim]"
        table.add_row(failure.unit_name, failure.kind, failure.step.value, message)
    return table


def emit_outputs(console: Console, values: dict[str, str], github_output: Path | None) -> None:
    if github_output is not None:
        write_github_outputs(values, github_output)
        console.print(f"[dim]Outputs written to {github_output}[/dim]")
