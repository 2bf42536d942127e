"""Main Typer application — imports and registers all CLI commands.

Entry point: ``lambdapromote`` (configured via pyproject.toml scripts).

Commands: detect, promote, publish, parameters.
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from lambdapromote.cli.commands.detect import detect_cmd
from lambdapromote.cli.commands.parameters import parameters_cmd
from lambdapromote.cli.commands.promote import promote_cmd
from lambdapromote.cli.commands.publish import publish_cmd
from lambdapromote.config import config

app = typer.Typer(
    name="lambdapromote",
    help="lambdapromote: change detection and versioned artifact promotion for Lambda units.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="detect", help="Show which units changed between two revisions.")(detect_cmd)
app.command(name="promote", help="Detect, build and publish changed units.")(promote_cmd)
app.command(name="publish", help="Build and publish a single unit.")(publish_cmd)
app.command(name="parameters", help="Aggregate unit metadata into deployment parameters.")(parameters_cmd)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (default from LAMBDAPROMOTE_LOG_LEVEL)."
    ),
) -> None:
    """Configure logging before any command runs."""
    configure_logging(log_level or config.log_level)


def configure_logging(level: str) -> None:
    """Route the package's loggers through Rich."""
    logger = logging.getLogger("lambdapromote")
    logger.setLevel(level.upper())
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(show_path=False, rich_tracebacks=True))
    logger.propagate = False


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
