"""``lambdapromote promote`` — detect, build, publish, and aggregate.

Runs the full pipeline for a revision range. Exits 0 when nothing changed
or every changed unit was published; exits 1 if any unit failed or was
cancelled, so the deployment step never runs on a partial artifact set.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from lambdapromote.cli.commands._shared import (
    change_set_table,
    emit_outputs,
    failures_table,
    load_config,
    print_error,
    records_table,
)
from lambdapromote.core.aggregation import PARAMETER_FORMATS, render_parameters
from lambdapromote.core.errors import PromotionError
from lambdapromote.core.orchestrator import PromotionOrchestrator
from lambdapromote.core.outputs import promotion_outputs

console = Console()


def promote_cmd(
    base: str = typer.Option(
        "",
        "--base",
        "-b",
        envvar="LAMBDAPROMOTE_BASE_REVISION",
        help="Base revision (empty or all zeros means first run).",
    ),
    head: str = typer.Option(
        "HEAD",
        "--head",
        envvar="LAMBDAPROMOTE_HEAD_REVISION",
        help="Head revision.",
    ),
    manifest: Path = typer.Option(
        None, "--manifest", "-m", help="Path to the unit manifest."
    ),
    repo: Path = typer.Option(
        None, "--repo", "-r", help="Repository work tree."
    ),
    bucket: str = typer.Option(
        None, "--bucket", help="Target S3 bucket."
    ),
    key_prefix: str = typer.Option(
        None, "--prefix", help="Storage key prefix."
    ),
    store_backend: str = typer.Option(
        None, "--store", help="Content store backend: s3 or local."
    ),
    max_concurrency: int = typer.Option(
        None, "--max-concurrency", "-j", min=1, help="Maximum units published at once."
    ),
    fail_fast: bool = typer.Option(
        None,
        "--fail-fast/--no-fail-fast",
        help="Stop starting new units after the first failure.",
    ),
    parameters_file: Path = typer.Option(
        None,
        "--parameters-file",
        help="Write the rendered deployment parameters to this file.",
    ),
    parameters_format: str = typer.Option(
        "cloudformation",
        "--format",
        "-f",
        help=f"Parameter format: {', '.join(PARAMETER_FORMATS)}.",
    ),
    github_output: Path = typer.Option(
        None,
        "--github-output",
        envvar="GITHUB_OUTPUT",
        help="Append changed/count/artifacts outputs to this file.",
    ),
) -> None:
    """Publish every unit that changed between two revisions."""
    if parameters_format not in PARAMETER_FORMATS:
        console.print(f"[bold red]Unknown format:[/bold red] {parameters_format}")
        raise typer.Exit(code=2)

    config = load_config(
        manifest_path=manifest,
        repo_path=repo,
        bucket=bucket,
        key_prefix=key_prefix,
        store_backend=store_backend,
        max_concurrency=max_concurrency,
        fail_fast=fail_fast,
    )
    orchestrator = PromotionOrchestrator(config)

    try:
        change_set = orchestrator.detect(base, head)
    except PromotionError as exc:
        print_error(console, exc)
        raise typer.Exit(code=1)

    if change_set.is_empty:
        console.print("[bold yellow]No changes detected. Nothing to publish.[/bold yellow]")
        emit_outputs(console, promotion_outputs(orchestrator.publish(change_set)), github_output)
        return

    console.print(change_set_table(change_set))
    try:
        result = orchestrator.publish(change_set)
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if result.records:
        console.print(records_table(result.records))
    if result.failures:
        console.print(failures_table(result.failures))
    if result.cancelled_units:
        console.print(
            f"[yellow]Cancelled:[/yellow] {', '.join(result.cancelled_units)}"
        )

    emit_outputs(console, promotion_outputs(result), github_output)

    if not result.succeeded:
        console.print(
            Panel(
                f"[bold red]{len(result.failures)} unit(s) failed, "
                f"{len(result.cancelled_units)} cancelled.[/bold red]\n"
                "[dim]Deployment must not proceed on this artifact set.[/dim]",
                title="[bold]Promotion Failed[/bold]",
                border_style="red",
            )
        )
        raise typer.Exit(code=1)

    try:
        parameters = orchestrator.parameters(result)
    except PromotionError as exc:
        print_error(console, exc)
        raise typer.Exit(code=1)
    except ValueError as exc:
        console.print(f"[bold red]Parameter naming error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    rendered = render_parameters(parameters, parameters_format)
    if parameters_file is not None:
        parameters_file.write_text(rendered + "\n", encoding="utf-8")
        console.print(f"[dim]Parameters written to {parameters_file}[/dim]")

    console.print(
        Panel(
            "\n".join([
                f"[bold green]Published {len(result.records)} unit(s).[/bold green]",
                "",
                escape(rendered),
            ]),
            title="[bold]Deployment Parameters[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
