"""``lambdapromote publish UNIT`` — publish one unit regardless of changes."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from lambdapromote.cli.commands._shared import load_config, print_error, records_table
from lambdapromote.core.errors import PromotionError
from lambdapromote.core.orchestrator import PromotionOrchestrator

console = Console()


def publish_cmd(
    unit: str = typer.Argument(..., help="Manifest name of the unit to publish."),
    manifest: Path = typer.Option(
        None, "--manifest", "-m", help="Path to the unit manifest."
    ),
    repo: Path = typer.Option(
        None, "--repo", "-r", help="Repository work tree."
    ),
    bucket: str = typer.Option(None, "--bucket", help="Target S3 bucket."),
    key_prefix: str = typer.Option(None, "--prefix", help="Storage key prefix."),
    store_backend: str = typer.Option(
        None, "--store", help="Content store backend: s3 or local."
    ),
) -> None:
    """Build and publish a single unit, then write its metadata file."""
    config = load_config(
        manifest_path=manifest,
        repo_path=repo,
        bucket=bucket,
        key_prefix=key_prefix,
        store_backend=store_backend,
    )
    orchestrator = PromotionOrchestrator(config)

    try:
        record = orchestrator.publish_unit(unit)
    except KeyError as exc:
        console.print(f"[bold red]Unknown unit:[/bold red] {exc.args[0]}")
        raise typer.Exit(code=1)
    except PromotionError as exc:
        print_error(console, exc)
        raise typer.Exit(code=1)
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(records_table([record]))
