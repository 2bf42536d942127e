"""``lambdapromote detect`` — report which units changed in a revision range."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from lambdapromote.cli.commands._shared import (
    change_set_table,
    emit_outputs,
    load_config,
    print_error,
)
from lambdapromote.core.errors import PromotionError
from lambdapromote.core.orchestrator import PromotionOrchestrator
from lambdapromote.core.outputs import change_set_outputs

console = Console()


def detect_cmd(
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
    github_output: Path = typer.Option(
        None,
        "--github-output",
        envvar="GITHUB_OUTPUT",
        help="Append changed/count/units outputs to this file.",
    ),
) -> None:
    """Detect changed units between two revisions."""
    config = load_config(manifest_path=manifest, repo_path=repo)
    orchestrator = PromotionOrchestrator(config)

    try:
        change_set = orchestrator.detect(base, head)
    except PromotionError as exc:
        print_error(console, exc)
        raise typer.Exit(code=1)

    if change_set.is_empty:
        console.print("[bold yellow]No changes detected.[/bold yellow]")
    else:
        console.print(change_set_table(change_set))

    emit_outputs(console, change_set_outputs(change_set), github_output)
