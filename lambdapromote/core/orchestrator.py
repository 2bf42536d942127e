"""Promotion orchestrator — the central coordinator for a run.

Wires the manifest reader, ChangeDetector, ArtifactPublisher and the
aggregation step into one pipeline:

    read manifest -> detect changes -> publish (fan-out per unit) -> aggregate

Units are independent. Each one is published on its own worker with no
shared mutable state; a failure in one unit never stops the others, but the
run as a whole is reported as failed.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

from lambdapromote.config import PromoteConfig
from lambdapromote.core.aggregation import build_parameters, collect_records
from lambdapromote.core.builders import UnitBuilder, builder_for_config
from lambdapromote.core.change_detector import ChangeDetector
from lambdapromote.core.content_store import ContentStore, store_for_config
from lambdapromote.core.errors import PromotionError, PublishCancelled
from lambdapromote.core.history import GitHistory, RevisionHistory
from lambdapromote.core.manifest_reader import read_manifest
from lambdapromote.core.metadata import MetadataWriter
from lambdapromote.core.publisher import ArtifactPublisher
from lambdapromote.core.step_machine import PublishStepMachine
from lambdapromote.core.versioning import Clock, WallClock
from lambdapromote.models.artifacts import ArtifactRecord, DeploymentParameter
from lambdapromote.models.publish import PromotionResult, PublishStep, UnitFailure
from lambdapromote.models.units import ChangeSet, UnitDescriptor

logger = logging.getLogger(__name__)


class PromotionOrchestrator:
    """Central pipeline orchestrator.

    Parameters
    ----------
    config:
        Pipeline configuration. Uses defaults if not provided.
    history:
        Revision history backend. Defaults to git in ``config.repo_path``.
    store:
        Content store. Built from config on first use if not provided.
    builder:
        Build collaborator. Chosen from config if not provided.
    clock:
        Version timestamp source. Defaults to ``WallClock``.
    """

    def __init__(
        self,
        config: PromoteConfig | None = None,
        *,
        history: RevisionHistory | None = None,
        store: ContentStore | None = None,
        builder: UnitBuilder | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or PromoteConfig()
        self.history = history or GitHistory(
            self.config.repo_path, timeout_seconds=self.config.history_timeout_seconds
        )
        self.detector = ChangeDetector(self.history)
        self.metadata_writer = MetadataWriter(self.config.metadata_dir)
        self._store = store
        self._builder = builder or builder_for_config(self.config)
        self._clock = clock or WallClock()
        self._publisher: ArtifactPublisher | None = None
        self._cancel = threading.Event()

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def store(self) -> ContentStore:
        if self._store is None:
            self._store = store_for_config(self.config)
        return self._store

    @property
    def publisher(self) -> ArtifactPublisher:
        if self._publisher is None:
            self._publisher = ArtifactPublisher(
                self.store,
                self._builder,
                self.metadata_writer,
                self._clock,
                key_prefix=self.config.key_prefix,
                source_root=self.config.repo_path,
                default_runtime=self.config.default_runtime,
                build_root=self.config.build_root,
                build_timeout_seconds=self.config.build_timeout_seconds,
            )
        return self._publisher

    # ------------------------------------------------------------------
    # Pipeline phases
    # ------------------------------------------------------------------

    def load_units(self) -> list[UnitDescriptor]:
        """Read the compute units declared in the configured manifest."""
        return read_manifest(self.config.manifest_path)

    def detect(
        self,
        base_revision: str,
        head_revision: str,
        units: list[UnitDescriptor] | None = None,
    ) -> ChangeSet:
        """Compute the ChangeSet for a revision range."""
        if units is None:
            units = self.load_units()
        change_set = self.detector.detect(units, base_revision, head_revision)
        logger.info(
            "%d of %d unit(s) changed between %s and %s%s",
            change_set.count,
            len(units),
            base_revision or "<none>",
            head_revision,
            " (bootstrap)" if change_set.bootstrap else "",
        )
        return change_set

    def publish(self, change_set: ChangeSet) -> PromotionResult:
        """Publish every changed unit, in parallel, and collect the outcome."""
        units = list(change_set.changed_units)
        if not units:
            logger.info("No changes detected; nothing to publish")
            return PromotionResult(change_set=change_set)

        # Collaborators are created once, before fan-out.
        _ = self.publisher
        for unit in units:
            self.metadata_writer.discard(unit.name)

        workers = self.config.max_concurrency or len(units)
        records: dict[str, ArtifactRecord] = {}
        failures: dict[str, UnitFailure] = {}
        cancelled: set[str] = set()

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="publish") as pool:
            futures = {pool.submit(self._publish_one, unit): unit for unit in units}
            try:
                for future in as_completed(futures):
                    unit = futures[future]
                    outcome = future.result()
                    if isinstance(outcome, ArtifactRecord):
                        records[unit.name] = outcome
                    elif outcome is None:
                        cancelled.add(unit.name)
                    else:
                        failures[unit.name] = outcome
            except KeyboardInterrupt:
                self.cancel()
                raise

        order = [u.name for u in units]
        result = PromotionResult(
            change_set=change_set,
            records=tuple(records[n] for n in order if n in records),
            failures=tuple(failures[n] for n in order if n in failures),
            cancelled_units=tuple(n for n in order if n in cancelled),
        )
        logger.info(
            "Publish finished: %d published, %d failed, %d cancelled",
            len(result.records),
            len(result.failures),
            len(result.cancelled_units),
        )
        return result

    def run(self, base_revision: str, head_revision: str) -> PromotionResult:
        """Detect and publish in one go."""
        return self.publish(self.detect(base_revision, head_revision))

    def publish_unit(self, unit_name: str) -> ArtifactRecord:
        """Publish a single manifest unit unconditionally."""
        for unit in self.load_units():
            if unit.name == unit_name:
                self.metadata_writer.discard(unit.name)
                return self.publisher.publish(unit, cancel_event=self._cancel)
        raise KeyError(f"Unit {unit_name!r} is not a compute unit in {self.config.manifest_path}")

    def parameters(self, result: PromotionResult) -> list[DeploymentParameter]:
        """Aggregate the run's metadata files into deployment parameters.

        Raises IncompleteArtifactSet if any changed unit has no record.
        """
        records = collect_records(self.config.metadata_dir, result.change_set.unit_names)
        return build_parameters(records, self.config.strip_prefixes)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop starting new units; in-flight units stop at the next step."""
        if not self._cancel.is_set():
            logger.warning("Cancellation requested")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _publish_one(self, unit: UnitDescriptor) -> ArtifactRecord | UnitFailure | None:
        """Publish one unit; None means it was cancelled."""
        if self._cancel.is_set():
            logger.info("%s: not started (run cancelled)", unit.name)
            return None
        machine = PublishStepMachine(unit.name)
        try:
            return self.publisher.publish(unit, cancel_event=self._cancel, machine=machine)
        except PublishCancelled:
            return None
        except PromotionError as exc:
            if self.config.fail_fast:
                self.cancel()
            return UnitFailure(
                unit_name=unit.name,
                kind=exc.kind,
                step=_as_step(exc.step),
                message=str(exc),
                diagnostic=exc.diagnostic,
                storage_key_versioned=getattr(exc, "storage_key_versioned", None),
            )
        except Exception as exc:
            logger.exception("%s: unexpected error during %s", unit.name, machine.last_active_step.value)
            if self.config.fail_fast:
                self.cancel()
            return UnitFailure(
                unit_name=unit.name,
                kind=type(exc).__name__,
                step=machine.last_active_step,
                message=str(exc),
            )


def _as_step(step: str | None) -> PublishStep:
    try:
        return PublishStep(step) if step else PublishStep.PENDING
    except ValueError:
        return PublishStep.PENDING
