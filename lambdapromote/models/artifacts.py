"""Published artifact models (one record per unit per run)."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class ArtifactRecord(BaseModel):
    """Metadata for one published build of one unit.

    The archive bytes live in the content store under two keys: the
    write-once versioned key and the overwritten ``latest`` key.
    ``store_revision_id`` is the revision issued by the store for the
    *latest* write, or None when the store does not revision objects.
    """

    model_config = ConfigDict(frozen=True)

    unit_name: str
    fingerprint: str  # "sha256:<hex>"
    version: str
    storage_key_versioned: str
    storage_key_latest: str
    store_revision_id: str | None = None
    size_bytes: int = 0
    published_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class ObjectHead(BaseModel):
    """What a content store reports about a stored object."""

    model_config = ConfigDict(frozen=True)

    key: str
    revision_id: str | None = None
    metadata: dict[str, str] = {}
    size_bytes: int = 0


class DeploymentParameter(BaseModel):
    """A single ``(name, value)`` pair handed to the deployment step."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str
