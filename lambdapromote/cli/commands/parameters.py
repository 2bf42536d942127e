"""``lambdapromote parameters UNIT...`` — aggregate metadata into parameters.

Reads the metadata files emitted by earlier publish runs (possibly on other
machines) and prints the deployment parameter list. Fails if any named unit
has no metadata yet.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from lambdapromote.cli.commands._shared import load_config, print_error
from lambdapromote.core.aggregation import (
    PARAMETER_FORMATS,
    build_parameters,
    collect_records,
    render_parameters,
)
from lambdapromote.core.errors import PromotionError

console = Console()


def parameters_cmd(
    units: list[str] = typer.Argument(..., help="Units expected in this deployment."),
    metadata_dir: Path = typer.Option(
        None, "--metadata-dir", "-d", help="Directory holding <unit>.json records."
    ),
    parameters_format: str = typer.Option(
        "cloudformation",
        "--format",
        "-f",
        help=f"Parameter format: {', '.join(PARAMETER_FORMATS)}.",
    ),
    output: Path = typer.Option(
        None, "--output", "-o", help="Write the parameters here instead of stdout."
    ),
) -> None:
    """Print deployment parameters for the given units."""
    if parameters_format not in PARAMETER_FORMATS:
        console.print(f"[bold red]Unknown format:[/bold red] {parameters_format}")
        raise typer.Exit(code=2)

    config = load_config(metadata_dir=metadata_dir)
    try:
        records = collect_records(config.metadata_dir, units)
        rendered = render_parameters(
            build_parameters(records, config.strip_prefixes), parameters_format
        )
    except PromotionError as exc:
        print_error(console, exc)
        raise typer.Exit(code=1)
    except ValueError as exc:
        console.print(f"[bold red]Parameter naming error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if output is not None:
        output.write_text(rendered + "\n", encoding="utf-8")
        console.print(f"[dim]Parameters written to {output}[/dim]")
    else:
        typer.echo(rendered)
