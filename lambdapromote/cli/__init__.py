"""lambdapromote CLI — Typer-based command-line interface.

Provides the ``lambdapromote`` command with subcommands for detecting
changed units, promoting them to the content store, publishing a single
unit, and aggregating metadata into deployment parameters.

All output uses Rich for formatted terminal display.
"""
