"""Hashing helpers for artifact fingerprints and canonical metadata.

Fingerprints use the same ``sha256:<hex>`` format throughout: in the
ArtifactRecord, in object metadata, and in the emitted metadata files.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

FINGERPRINT_PREFIX = "sha256:"


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def fingerprint(data: bytes) -> str:
    """Fingerprint archive bytes. Returns "sha256:<hex>"."""
    return f"{FINGERPRINT_PREFIX}{sha256_hex(data)}"


def digest_of(fp: str) -> str:
    """Strip the ``sha256:`` prefix from a fingerprint, if present."""
    return fp.removeprefix(FINGERPRINT_PREFIX)
