"""Translate run results into the values a CI workflow can observe.

This is the last, thin layer: internally everything is passed as return
values; only here do results become ``changed`` / ``count`` / ``units`` /
``functions`` / ``artifacts`` strings in a GitHub Actions style output file.
"""

from __future__ import annotations

import uuid
from pathlib import Path

from lambdapromote.core.hasher import canonical_json_bytes
from lambdapromote.models.publish import PromotionResult
from lambdapromote.models.units import ChangeSet


def change_set_outputs(change_set: ChangeSet) -> dict[str, str]:
    """Outputs for a detection-only run."""
    return {
        "changed": "true" if not change_set.is_empty else "false",
        "count": str(change_set.count),
        "units": canonical_json_bytes(change_set.unit_names).decode("ascii"),
        "functions": canonical_json_bytes(
            {
                unit.name: unit.function.model_dump(exclude_none=True)
                for unit in change_set.changed_units
            }
        ).decode("ascii"),
    }


def promotion_outputs(result: PromotionResult) -> dict[str, str]:
    """Outputs for a full promotion run."""
    artifacts = [record.model_dump(mode="json") for record in result.records]
    outputs = change_set_outputs(result.change_set)
    outputs["artifacts"] = canonical_json_bytes(artifacts).decode("ascii")
    return outputs


def format_output_lines(values: dict[str, str]) -> str:
    """Format values as ``key=value`` lines, heredoc-style when multi-line."""
    lines: list[str] = []
    for key, value in values.items():
        if "\n" in value:
            delimiter = f"EOF_{uuid.uuid4().hex}"
            lines.append(f"{key}<<{delimiter}")
            lines.append(value)
            lines.append(delimiter)
        else:
            lines.append(f"{key}={value}")
    return "\n".join(lines) + "\n"


def write_github_outputs(values: dict[str, str], path: Path) -> None:
    """Append *values* to a GitHub Actions output file."""
    with Path(path).open("a", encoding="utf-8") as fh:
        fh.write(format_output_lines(values))
