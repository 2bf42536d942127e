"""Fold per-unit ArtifactRecords into deployment parameters.

Per record the deployment step receives ``<Base>S3Key`` (the latest key)
and, when the store issued a revision for the latest write,
``<Base>S3Version``. A record without a revision id produces no
``S3Version`` parameter at all: the key change alone drives the update.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Sequence
from pathlib import Path

from pydantic import ValidationError

from lambdapromote.core.errors import IncompleteArtifactSet
from lambdapromote.core.metadata import read_record, record_path
from lambdapromote.models.artifacts import ArtifactRecord, DeploymentParameter

logger = logging.getLogger(__name__)

KEY_SUFFIX = "S3Key"
VERSION_SUFFIX = "S3Version"

PARAMETER_FORMATS = ("cloudformation", "overrides", "json")

_LAMBDA_MARKER = re.compile(r"[._\-\s]?Lambda$")
_SEPARATORS = re.compile(r"[^0-9A-Za-z]+")


def derive_parameter_base_name(
    unit_name: str, strip_prefixes: Sequence[str] = ()
) -> str:
    """Turn a unit name into a parameter base name.

    Rules, applied in order:

    1. Remove the first of *strip_prefixes* that the name starts with.
    2. Remove a trailing ``Lambda`` marker together with one preceding
       separator (``.Lambda``, ``-Lambda``, ``_Lambda``), unless the name
       is nothing but the marker.
    3. Split on non-alphanumeric characters and join the segments with
       their first letter upper-cased.

    ``"SavingsScribe.HelloWorld.Lambda"`` with prefix ``"SavingsScribe."``
    becomes ``"HelloWorld"``; ``"image-resize"`` becomes ``"ImageResize"``.
    """
    name = unit_name.strip()
    for prefix in strip_prefixes:
        if prefix and name.startswith(prefix) and len(name) > len(prefix):
            name = name[len(prefix):]
            break

    stripped = _LAMBDA_MARKER.sub("", name)
    if _SEPARATORS.sub("", stripped):
        name = stripped

    segments = [s for s in _SEPARATORS.split(name) if s]
    base = "".join(s[0].upper() + s[1:] for s in segments)
    if not base:
        raise ValueError(f"Cannot derive a parameter name from unit {unit_name!r}")
    return base


def collect_records(directory: Path, expected_names: Iterable[str]) -> list[ArtifactRecord]:
    """Load the record for every expected unit, in *expected_names* order.

    Raises IncompleteArtifactSet naming every unit whose record is missing
    or unreadable; a partial set is never returned.
    """
    records: list[ArtifactRecord] = []
    missing: list[str] = []
    problems: list[str] = []
    for name in expected_names:
        path = record_path(directory, name)
        if not path.exists():
            missing.append(name)
            continue
        try:
            record = read_record(path)
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            missing.append(name)
            problems.append(f"{name}: {exc}")
            continue
        if record.unit_name != name:
            missing.append(name)
            problems.append(f"{name}: record belongs to {record.unit_name!r}")
            continue
        records.append(record)

    if missing:
        raise IncompleteArtifactSet(
            f"Missing artifact metadata for: {', '.join(missing)}",
            missing=missing,
            diagnostic="\n".join(problems),
        )
    logger.info("Collected %d artifact record(s) from %s", len(records), directory)
    return records


def build_parameters(
    records: Iterable[ArtifactRecord], strip_prefixes: Sequence[str] = ()
) -> list[DeploymentParameter]:
    """Build the flat parameter list for the deployment step."""
    parameters: list[DeploymentParameter] = []
    seen: dict[str, str] = {}
    for record in records:
        base = derive_parameter_base_name(record.unit_name, strip_prefixes)
        if base in seen and seen[base] != record.unit_name:
            raise ValueError(
                f"Units {seen[base]!r} and {record.unit_name!r} both map to "
                f"parameter base name {base!r}"
            )
        seen[base] = record.unit_name
        parameters.append(
            DeploymentParameter(name=f"{base}{KEY_SUFFIX}", value=record.storage_key_latest)
        )
        if record.store_revision_id is not None:
            parameters.append(
                DeploymentParameter(
                    name=f"{base}{VERSION_SUFFIX}", value=record.store_revision_id
                )
            )
    return parameters


def render_parameters(parameters: Sequence[DeploymentParameter], fmt: str = "cloudformation") -> str:
    """Render parameters for the deployment tool.

    ``cloudformation``: JSON list of ``ParameterKey``/``ParameterValue``.
    ``overrides``: ``Name=Value`` lines for ``--parameter-overrides``.
    ``json``: a flat JSON object.
    """
    if fmt == "cloudformation":
        return json.dumps(
            [{"ParameterKey": p.name, "ParameterValue": p.value} for p in parameters],
            indent=2,
        )
    if fmt == "overrides":
        return "\n".join(f"{p.name}={p.value}" for p in parameters)
    if fmt == "json":
        return json.dumps({p.name: p.value for p in parameters}, indent=2)
    raise ValueError(f"Unknown parameter format {fmt!r}; expected one of {PARAMETER_FORMATS}")
