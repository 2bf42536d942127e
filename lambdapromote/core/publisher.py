"""Artifact publisher — build, package, fingerprint, version, publish, emit.

The six steps run strictly in order through a PublishStepMachine; each step
consumes the previous step's output. A failed build never reaches the
store. The versioned upload is retried at most once; the latest upload is
never retried, since a retry could reorder it against a concurrent publish
of the same unit.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from pathlib import Path

from lambdapromote.core.builders import UnitBuilder
from lambdapromote.core.content_store import ContentStore, storage_keys
from lambdapromote.core.errors import PromotionError, PublishCancelled, UploadFailed
from lambdapromote.core.hasher import fingerprint
from lambdapromote.core.metadata import MetadataWriter
from lambdapromote.core.packager import build_deterministic_zip
from lambdapromote.core.step_machine import PublishStepMachine
from lambdapromote.core.versioning import Clock, WallClock, derive_version
from lambdapromote.models.artifacts import ArtifactRecord
from lambdapromote.models.publish import PublishStep
from lambdapromote.models.units import UnitDescriptor

logger = logging.getLogger(__name__)


class ArtifactPublisher:
    """Publishes one changed unit at a time; safe to share across threads.

    Parameters
    ----------
    store:
        Content store receiving the versioned and latest copies.
    builder:
        Build collaborator for the unit's source path.
    metadata_writer:
        Destination for the emitted ArtifactRecord files.
    clock:
        Timestamp source for versions. Defaults to ``WallClock``.
    key_prefix:
        Namespace prefix for storage keys.
    source_root:
        Directory that manifest source paths are relative to.
    default_runtime:
        Runtime used when a unit does not declare one.
    build_root:
        Parent directory for per-unit scratch build directories.
    build_timeout_seconds:
        Timeout handed to the builder.
    versioned_upload_attempts:
        Total attempts for the versioned write (one retry by default).
    """

    def __init__(
        self,
        store: ContentStore,
        builder: UnitBuilder,
        metadata_writer: MetadataWriter,
        clock: Clock | None = None,
        *,
        key_prefix: str = "lambdas",
        source_root: Path = Path("."),
        default_runtime: str = "dotnet8",
        build_root: Path | None = None,
        build_timeout_seconds: float | None = None,
        versioned_upload_attempts: int = 2,
    ) -> None:
        self._store = store
        self._builder = builder
        self._metadata = metadata_writer
        self._clock = clock or WallClock()
        self._prefix = key_prefix
        self._source_root = Path(source_root)
        self._default_runtime = default_runtime
        self._build_root = Path(build_root) if build_root else None
        self._build_timeout = build_timeout_seconds
        self._versioned_attempts = max(1, versioned_upload_attempts)

    # ------------------------------------------------------------------
    # Publish sequence
    # ------------------------------------------------------------------

    def publish(
        self,
        unit: UnitDescriptor,
        *,
        cancel_event: threading.Event | None = None,
        machine: PublishStepMachine | None = None,
    ) -> ArtifactRecord:
        """Run the full publish sequence for *unit* and return its record.

        Raises BuildFailed, UploadFailed or PublishCancelled, each tagged
        with the unit name and the step that failed.
        """
        machine = machine or PublishStepMachine(unit.name)
        if self._build_root is not None:
            self._build_root.mkdir(parents=True, exist_ok=True)
        work_dir = Path(
            tempfile.mkdtemp(
                prefix=f"{unit.name}-",
                dir=str(self._build_root) if self._build_root else None,
            )
        )
        try:
            return self._run_steps(unit, machine, work_dir, cancel_event)
        except PublishCancelled as exc:
            self._tag(exc, unit, machine)
            machine.cancel(str(exc))
            logger.warning("%s: publish cancelled before %s", unit.name, exc.step)
            raise
        except PromotionError as exc:
            self._tag(exc, unit, machine)
            machine.fail(str(exc))
            logger.error("%s: %s failed: %s", unit.name, exc.step, exc)
            raise
        except Exception:
            machine.fail("unexpected error")
            raise
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    def _run_steps(
        self,
        unit: UnitDescriptor,
        machine: PublishStepMachine,
        work_dir: Path,
        cancel_event: threading.Event | None,
    ) -> ArtifactRecord:
        # 1. Build
        self._enter(machine, PublishStep.BUILD, cancel_event)
        runtime = unit.function.runtime or self._default_runtime
        output_dir = self._builder.build(
            self._source_root / unit.source_path,
            runtime,
            work_dir / "build",
            timeout_seconds=self._build_timeout,
        )

        # 2. Package
        self._enter(machine, PublishStep.PACKAGE, cancel_event)
        archive = build_deterministic_zip(output_dir)

        # 3. Fingerprint
        self._enter(machine, PublishStep.FINGERPRINT, cancel_event)
        fp = fingerprint(archive)

        # 4. Version
        self._enter(machine, PublishStep.VERSION, cancel_event)
        version = derive_version(self._clock.tick(), fp)
        versioned_key, latest_key = storage_keys(self._prefix, unit.name, version)
        metadata = {"fingerprint": fp, "unit": unit.name, "version": version}

        # 5. Publish
        self._enter(machine, PublishStep.PUBLISH, cancel_event)
        self._upload_versioned(versioned_key, archive, metadata)
        revision_id = self._upload_latest(latest_key, versioned_key, archive, metadata)

        # 6. Emit — the upload is done, so cancellation no longer applies.
        machine.advance(PublishStep.EMIT)
        record = ArtifactRecord(
            unit_name=unit.name,
            fingerprint=fp,
            version=version,
            storage_key_versioned=versioned_key,
            storage_key_latest=latest_key,
            store_revision_id=revision_id,
            size_bytes=len(archive),
        )
        try:
            self._metadata.write(record)
        except OSError as exc:
            raise UploadFailed(
                f"Writing metadata for {unit.name} failed",
                diagnostic=str(exc),
                storage_key_versioned=versioned_key,
            ) from exc

        machine.advance(PublishStep.DONE)
        logger.info("%s published as %s (%s)", unit.name, version, fp)
        return record

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def _upload_versioned(self, key: str, archive: bytes, metadata: dict[str, str]) -> None:
        for attempt in range(1, self._versioned_attempts + 1):
            try:
                self._store.put(key, archive, metadata, overwrite=False)
                return
            except UploadFailed as exc:
                if attempt > 1 and self._already_stored(key, metadata):
                    # An earlier attempt landed even though it reported failure.
                    logger.info("Versioned upload of %s found in store after retry", key)
                    return
                if attempt == self._versioned_attempts:
                    raise
                logger.warning(
                    "Versioned upload of %s failed (attempt %d/%d): %s",
                    key, attempt, self._versioned_attempts, exc,
                )

    def _already_stored(self, key: str, metadata: dict[str, str]) -> bool:
        try:
            head = self._store.head(key)
        except UploadFailed:
            return False
        return head is not None and head.metadata.get("fingerprint") == metadata["fingerprint"]

    def _upload_latest(
        self, key: str, versioned_key: str, archive: bytes, metadata: dict[str, str]
    ) -> str | None:
        try:
            return self._store.put(key, archive, metadata, overwrite=True)
        except UploadFailed as exc:
            exc.storage_key_versioned = versioned_key
            logger.error(
                "Latest upload of %s failed; versioned copy %s remains valid",
                key, versioned_key,
            )
            raise

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _enter(
        machine: PublishStepMachine,
        step: PublishStep,
        cancel_event: threading.Event | None,
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise PublishCancelled(
                f"Run cancelled before {step.value}", step=step.value
            )
        machine.advance(step)

    @staticmethod
    def _tag(exc: PromotionError, unit: UnitDescriptor, machine: PublishStepMachine) -> None:
        if exc.unit_name is None:
            exc.unit_name = unit.name
        if exc.step is None:
            exc.step = machine.current.value
