"""Manifest reader — the single source of truth for which units exist.

Manifest shape (YAML or JSON)::

    HelloWorld:
      Type: Lambda
      Path: src/HelloWorld
      Tests:
        Unit: tests/HelloWorld.Tests
      Runtime: dotnet8
      Handler: HelloWorld::HelloWorld.Function::FunctionHandler
    Queue:
      Type: SQS

Only entries whose ``Type`` is ``Lambda`` are returned; declaration order
is preserved.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from lambdapromote.core.errors import MalformedManifest, MissingField
from lambdapromote.models.units import FunctionSettings, UnitDescriptor

logger = logging.getLogger(__name__)

COMPUTE_UNIT_TYPE = "Lambda"

# Manifest key -> FunctionSettings field
_FUNCTION_KEYS = {
    "FunctionName": "function_name",
    "Description": "description",
    "Handler": "handler",
    "Runtime": "runtime",
    "MemorySize": "memory_size",
    "Timeout": "timeout_seconds",
}


def read_manifest(path: Path | str) -> list[UnitDescriptor]:
    """Read and parse the manifest at *path*."""
    manifest_path = Path(path)
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise MalformedManifest(
            f"Cannot read manifest {manifest_path}: {exc}", step="manifest"
        ) from exc
    return parse_manifest(text, source=str(manifest_path))


def parse_manifest(text: str, *, source: str = "<manifest>") -> list[UnitDescriptor]:
    """Parse manifest text into the ordered list of compute units."""
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise MalformedManifest(
            f"Manifest {source} is not valid structured data",
            step="manifest",
            diagnostic=str(exc),
        ) from exc

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise MalformedManifest(
            f"Manifest {source} must be a mapping of unit name to entry, "
            f"got {type(document).__name__}",
            step="manifest",
        )

    units: list[UnitDescriptor] = []
    skipped = 0
    for name, entry in document.items():
        if not isinstance(entry, dict):
            raise MalformedManifest(
                f"Manifest entry {name!r} in {source} must be a mapping",
                unit_name=str(name),
                step="manifest",
            )
        if entry.get("Type") != COMPUTE_UNIT_TYPE:
            skipped += 1
            continue
        units.append(_parse_unit(str(name), entry, source))

    logger.info(
        "Manifest %s: %d compute unit(s), %d other entr%s skipped",
        source,
        len(units),
        skipped,
        "y" if skipped == 1 else "ies",
    )
    return units


def _parse_unit(name: str, entry: dict[str, Any], source: str) -> UnitDescriptor:
    source_path = entry.get("Path")
    if not isinstance(source_path, str) or not source_path.strip():
        raise MissingField(
            f"Compute unit {name!r} in {source} has no Path",
            unit_name=name,
            step="manifest",
        )

    settings: dict[str, Any] = {}
    for key, field in _FUNCTION_KEYS.items():
        if entry.get(key) is not None:
            settings[field] = entry[key]
    try:
        function = FunctionSettings(**settings)
    except ValueError as exc:
        raise MalformedManifest(
            f"Compute unit {name!r} in {source} has invalid function settings",
            unit_name=name,
            step="manifest",
            diagnostic=str(exc),
        ) from exc

    return UnitDescriptor(
        name=name,
        source_path=source_path.strip(),
        test_paths=_parse_test_paths(name, entry.get("Tests"), source),
        function=function,
    )


def _parse_test_paths(name: str, tests: Any, source: str) -> tuple[str, ...]:
    if tests is None:
        return ()
    if isinstance(tests, dict):
        return tuple(str(v) for v in tests.values() if v is not None)
    if isinstance(tests, list):
        return tuple(str(v) for v in tests if v is not None)
    raise MalformedManifest(
        f"Tests of unit {name!r} in {source} must be a mapping or a list",
        unit_name=name,
        step="manifest",
    )
