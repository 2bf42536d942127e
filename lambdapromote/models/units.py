"""Deployable unit models — the manifest's view of the world."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FunctionSettings(BaseModel):
    """Per-function deployment settings declared next to a unit.

    Only ``runtime`` is consumed by the pipeline (it selects the build
    runtime). The rest reaches the deployment template through the
    ``functions`` run output.
    """

    model_config = ConfigDict(frozen=True)

    function_name: str | None = None
    description: str | None = None
    handler: str | None = None
    runtime: str | None = None
    memory_size: int = 512
    timeout_seconds: int = 30


class UnitDescriptor(BaseModel):
    """One independently deployable compute unit declared in the manifest."""

    model_config = ConfigDict(frozen=True)

    name: str
    source_path: str
    test_paths: tuple[str, ...] = ()
    function: FunctionSettings = Field(default_factory=FunctionSettings)


class ChangeSet(BaseModel):
    """Units whose source subtree changed between two revisions.

    ``changed_units`` preserves manifest declaration order. ``bootstrap`` is
    True when the base revision could not be resolved and every unit was
    reported as changed.
    """

    model_config = ConfigDict(frozen=True)

    changed_units: tuple[UnitDescriptor, ...] = ()
    base_revision: str = ""
    head_revision: str = ""
    bootstrap: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.changed_units

    @property
    def count(self) -> int:
        return len(self.changed_units)

    @property
    def unit_names(self) -> list[str]:
        return [u.name for u in self.changed_units]
