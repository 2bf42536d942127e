"""Discoverable per-unit metadata files.

Each published unit gets ``{directory}/{unit_name}.json`` holding its
ArtifactRecord, so the aggregation step can find every record without
re-querying the content store.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from lambdapromote.models.artifacts import ArtifactRecord

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


def record_path(directory: Path, unit_name: str) -> Path:
    return Path(directory) / f"{unit_name}{RECORD_SUFFIX}"


class MetadataWriter:
    """Writes ArtifactRecords atomically into a metadata directory.

    Parameters
    ----------
    directory:
        Target directory, created on first use.
    """

    def __init__(self, directory: Path) -> None:
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def write(self, record: ArtifactRecord) -> Path:
        """Persist *record* and return the file path."""
        self._dir.mkdir(parents=True, exist_ok=True)
        path = record_path(self._dir, record.unit_name)
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        tmp.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, path)
        logger.info("Wrote metadata for %s to %s", record.unit_name, path)
        return path

    def discard(self, unit_name: str) -> bool:
        """Remove a stale record for *unit_name*. Returns True if one existed."""
        path = record_path(self._dir, unit_name)
        if path.exists():
            path.unlink()
            logger.debug("Discarded stale metadata %s", path)
            return True
        return False


def read_record(path: Path) -> ArtifactRecord:
    """Load an ArtifactRecord from a metadata file."""
    return ArtifactRecord.model_validate_json(Path(path).read_text(encoding="utf-8"))
