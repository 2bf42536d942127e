"""lambdapromote data models — all Pydantic v2, all frozen (immutable)."""

from lambdapromote.models.artifacts import (
    ArtifactRecord,
    DeploymentParameter,
    ObjectHead,
)
from lambdapromote.models.publish import (
    PUBLISH_SEQUENCE,
    VALID_STEP_TRANSITIONS,
    PromotionResult,
    PublishStep,
    StepTransition,
    UnitFailure,
)
from lambdapromote.models.units import ChangeSet, FunctionSettings, UnitDescriptor

__all__ = [
    # units
    "FunctionSettings",
    "UnitDescriptor",
    "ChangeSet",
    # artifacts
    "ArtifactRecord",
    "ObjectHead",
    "DeploymentParameter",
    # publish
    "PublishStep",
    "PUBLISH_SEQUENCE",
    "VALID_STEP_TRANSITIONS",
    "StepTransition",
    "UnitFailure",
    "PromotionResult",
]
