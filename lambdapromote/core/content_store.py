"""Content stores — where packaged artifacts are published.

Key namespace: ``{prefix}/{unit_name}/{version}`` for the write-once
versioned copy and ``{prefix}/{unit_name}/latest`` for the mutable pointer.

Two backends satisfy the ``ContentStore`` Protocol:

- ``S3ContentStore`` — S3 (or any S3-compatible endpoint) via boto3.
  Captures the object ``VersionId`` when bucket versioning is enabled.
- ``LocalContentStore`` — filesystem layout with a JSON metadata sidecar
  per object; optionally issues a revision id on every write.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from lambdapromote.core.errors import UploadFailed
from lambdapromote.models.artifacts import ObjectHead

if TYPE_CHECKING:
    from lambdapromote.config import PromoteConfig

logger = logging.getLogger(__name__)

LATEST_MARKER = "latest"


def storage_keys(prefix: str, unit_name: str, version: str) -> tuple[str, str]:
    """Return ``(versioned_key, latest_key)`` for a unit build."""
    base = f"{prefix.strip('/')}/{unit_name}" if prefix.strip("/") else unit_name
    return f"{base}/{version}", f"{base}/{LATEST_MARKER}"


@runtime_checkable
class ContentStore(Protocol):
    """Protocol for artifact store backends."""

    def put(
        self,
        key: str,
        data: bytes,
        metadata: dict[str, str],
        *,
        overwrite: bool = True,
    ) -> str | None:
        """Write *data* under *key*; return the store revision id, if any.

        With ``overwrite=False`` the write must fail if *key* exists.
        """
        ...

    def head(self, key: str) -> ObjectHead | None:
        """Describe the object at *key*, or None if absent."""
        ...

    def get(self, key: str) -> bytes:
        """Return the bytes stored at *key*."""
        ...


# ----------------------------------------------------------------------
# S3
# ----------------------------------------------------------------------


class S3ContentStore:
    """S3-backed content store.

    Parameters
    ----------
    bucket:
        Target bucket name.
    region:
        AWS region (optional, uses the boto3 default chain if not set).
    endpoint_url:
        Custom endpoint for MinIO/LocalStack-compatible storage.
    timeout_seconds:
        Connect/read timeout applied to every request.
    client:
        Pre-built boto3 S3 client (tests inject a mock here).
    """

    def __init__(
        self,
        bucket: str,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
        timeout_seconds: float = 120.0,
        client: Any = None,
    ) -> None:
        if not bucket:
            raise ValueError("S3ContentStore requires a bucket name")
        self._bucket = bucket
        if client is None:
            import boto3
            from botocore.config import Config

            kwargs: dict[str, Any] = {
                "config": Config(
                    connect_timeout=timeout_seconds,
                    read_timeout=timeout_seconds,
                    retries={"max_attempts": 1, "mode": "standard"},
                )
            }
            if region:
                kwargs["region_name"] = region
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)
        self._s3 = client

    @property
    def bucket(self) -> str:
        return self._bucket

    def put(
        self,
        key: str,
        data: bytes,
        metadata: dict[str, str],
        *,
        overwrite: bool = True,
    ) -> str | None:
        from botocore.exceptions import BotoCoreError, ClientError

        if not overwrite and self.head(key) is not None:
            raise UploadFailed(
                f"Refusing to overwrite write-once key s3://{self._bucket}/{key}",
                step="publish",
            )
        try:
            response = self._s3.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType="application/zip",
                Metadata=metadata,
            )
        except (ClientError, BotoCoreError) as exc:
            raise UploadFailed(
                f"Upload to s3://{self._bucket}/{key} failed",
                step="publish",
                diagnostic=str(exc),
            ) from exc
        revision = response.get("VersionId")
        logger.debug(
            "S3 put: s3://%s/%s (%d bytes, version=%s)",
            self._bucket, key, len(data), revision,
        )
        # Unversioned buckets report the literal string "null".
        if not revision or revision == "null":
            return None
        return revision

    def head(self, key: str) -> ObjectHead | None:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self._s3.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in ("404", "NoSuchKey", "NotFound"):
                return None
            raise UploadFailed(
                f"HEAD s3://{self._bucket}/{key} failed",
                step="publish",
                diagnostic=str(exc),
            ) from exc
        except BotoCoreError as exc:
            raise UploadFailed(
                f"HEAD s3://{self._bucket}/{key} failed",
                step="publish",
                diagnostic=str(exc),
            ) from exc
        revision = response.get("VersionId")
        return ObjectHead(
            key=key,
            revision_id=None if not revision or revision == "null" else revision,
            metadata=dict(response.get("Metadata") or {}),
            size_bytes=int(response.get("ContentLength") or 0),
        )

    def get(self, key: str) -> bytes:
        response = self._s3.get_object(Bucket=self._bucket, Key=key)
        return response["Body"].read()


# ----------------------------------------------------------------------
# Local filesystem
# ----------------------------------------------------------------------


class LocalContentStore:
    """Filesystem content store.

    Layout: ``{base_path}/{key}`` for the bytes and
    ``{base_path}/{key}.meta.json`` for metadata and revision id.

    Parameters
    ----------
    base_path:
        Root directory for stored objects.
    revisioning:
        When True every write gets a fresh revision id, mirroring a
        versioned bucket. When False ``put`` returns None.
    """

    _META_SUFFIX = ".meta.json"

    def __init__(self, base_path: Path, *, revisioning: bool = True) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)
        self._revisioning = revisioning

    def _object_path(self, key: str) -> Path:
        parts = [p for p in key.split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise UploadFailed(f"Invalid storage key {key!r}", step="publish")
        return self._base.joinpath(*parts)

    def _meta_path(self, key: str) -> Path:
        path = self._object_path(key)
        return path.with_name(path.name + self._META_SUFFIX)

    def put(
        self,
        key: str,
        data: bytes,
        metadata: dict[str, str],
        *,
        overwrite: bool = True,
    ) -> str | None:
        path = self._object_path(key)
        if not overwrite and path.exists():
            raise UploadFailed(
                f"Refusing to overwrite write-once key {key}", step="publish"
            )
        revision = uuid.uuid4().hex if self._revisioning else None
        sidecar = {"metadata": dict(metadata), "revision_id": revision}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            _atomic_write(path, data)
            _atomic_write(self._meta_path(key), json.dumps(sidecar, sort_keys=True).encode("utf-8"))
        except OSError as exc:
            raise UploadFailed(
                f"Write of {key} to {self._base} failed",
                step="publish",
                diagnostic=str(exc),
            ) from exc
        logger.debug("Local put: %s (%d bytes, revision=%s)", key, len(data), revision)
        return revision

    def head(self, key: str) -> ObjectHead | None:
        path = self._object_path(key)
        if not path.exists():
            return None
        meta_path = self._meta_path(key)
        sidecar: dict[str, Any] = {}
        if meta_path.exists():
            sidecar = json.loads(meta_path.read_text(encoding="utf-8"))
        return ObjectHead(
            key=key,
            revision_id=sidecar.get("revision_id"),
            metadata=sidecar.get("metadata", {}),
            size_bytes=path.stat().st_size,
        )

    def get(self, key: str) -> bytes:
        path = self._object_path(key)
        if not path.exists():
            raise FileNotFoundError(f"Object not found: {key}")
        return path.read_bytes()


def _atomic_write(path: Path, data: bytes) -> None:
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


def store_for_config(config: PromoteConfig) -> ContentStore:
    """Build the content store backend selected by *config*."""
    if config.store_backend == "local":
        return LocalContentStore(
            config.local_store_path, revisioning=config.local_store_revisioning
        )
    if not config.bucket:
        raise ValueError(
            "store_backend 's3' requires a bucket (set LAMBDAPROMOTE_BUCKET)"
        )
    return S3ContentStore(
        config.bucket,
        region=config.region,
        endpoint_url=config.endpoint_url,
        timeout_seconds=config.upload_timeout_seconds,
    )
