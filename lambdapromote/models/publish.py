"""Publish step models — the per-unit state sequence and run results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from lambdapromote.models.artifacts import ArtifactRecord
from lambdapromote.models.units import ChangeSet


class PublishStep(str, Enum):
    """Named states of one unit's publish sequence."""

    PENDING = "pending"
    BUILD = "build"
    PACKAGE = "package"
    FINGERPRINT = "fingerprint"
    VERSION = "version"
    PUBLISH = "publish"
    EMIT = "emit"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Ordered happy path; each step depends on the previous step's output.
PUBLISH_SEQUENCE: tuple[PublishStep, ...] = (
    PublishStep.BUILD,
    PublishStep.PACKAGE,
    PublishStep.FINGERPRINT,
    PublishStep.VERSION,
    PublishStep.PUBLISH,
    PublishStep.EMIT,
)

_TERMINAL = {PublishStep.DONE, PublishStep.FAILED, PublishStep.CANCELLED}


def _build_transitions() -> dict[PublishStep, set[PublishStep]]:
    chain = (PublishStep.PENDING, *PUBLISH_SEQUENCE, PublishStep.DONE)
    table: dict[PublishStep, set[PublishStep]] = {}
    for current, following in zip(chain, chain[1:]):
        table[current] = {following, PublishStep.FAILED, PublishStep.CANCELLED}
    for step in _TERMINAL:
        table[step] = set()
    return table


# Valid step transitions — enforced by PublishStepMachine.
# Terminal states (DONE, FAILED, CANCELLED) have no outgoing transitions.
VALID_STEP_TRANSITIONS: dict[PublishStep, set[PublishStep]] = _build_transitions()


class StepTransition(BaseModel):
    """Records a single step transition for one unit."""

    model_config = ConfigDict(frozen=True)

    unit_name: str
    from_step: PublishStep
    to_step: PublishStep
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    detail: str | None = None


class UnitFailure(BaseModel):
    """A unit whose publish did not complete.

    ``storage_key_versioned`` is set when the versioned write succeeded and
    a later step (typically the latest-key write) failed, so the operator
    knows a consistent versioned artifact exists.
    """

    model_config = ConfigDict(frozen=True)

    unit_name: str
    kind: str
    step: PublishStep
    message: str
    diagnostic: str = ""
    storage_key_versioned: str | None = None


class PromotionResult(BaseModel):
    """Outcome of a complete detect-and-publish run."""

    model_config = ConfigDict(frozen=True)

    change_set: ChangeSet
    records: tuple[ArtifactRecord, ...] = ()
    failures: tuple[UnitFailure, ...] = ()
    cancelled_units: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return not self.change_set.is_empty

    @property
    def changed_count(self) -> int:
        return self.change_set.count

    @property
    def succeeded(self) -> bool:
        """True iff every changed unit produced an ArtifactRecord."""
        return not self.failures and not self.cancelled_units
