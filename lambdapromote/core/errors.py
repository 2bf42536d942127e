"""Error taxonomy for the promotion pipeline.

Every error carries enough context (unit, step, collaborator diagnostic) to
be actionable without re-running. "No changes detected" is not an error.
"""

from __future__ import annotations


class PromotionError(RuntimeError):
    """Base class for all pipeline failures.

    Parameters
    ----------
    message:
        Human-readable summary.
    unit_name:
        The affected unit, when the failure is unit-scoped.
    step:
        The publish step (or pipeline phase) that failed.
    diagnostic:
        Raw output from the failing collaborator (build log, store error).
    """

    def __init__(
        self,
        message: str,
        *,
        unit_name: str | None = None,
        step: str | None = None,
        diagnostic: str = "",
    ) -> None:
        super().__init__(message)
        self.unit_name = unit_name
        self.step = step
        self.diagnostic = diagnostic

    @property
    def kind(self) -> str:
        return type(self).__name__


class MalformedManifest(PromotionError):
    """The manifest cannot be read or parsed as structured data."""


class MissingField(PromotionError):
    """A compute-unit manifest entry lacks a required field."""


class HistoryUnavailable(PromotionError):
    """The revision history backend cannot be queried at all."""


class BuildFailed(PromotionError):
    """The build collaborator failed, timed out, or produced nothing."""


class UploadFailed(PromotionError):
    """A content store write failed or timed out.

    ``storage_key_versioned`` is set when the versioned write had already
    succeeded before the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        unit_name: str | None = None,
        step: str | None = None,
        diagnostic: str = "",
        storage_key_versioned: str | None = None,
    ) -> None:
        super().__init__(
            message, unit_name=unit_name, step=step, diagnostic=diagnostic
        )
        self.storage_key_versioned = storage_key_versioned


class IncompleteArtifactSet(PromotionError):
    """Aggregation found expected units without metadata."""

    def __init__(self, message: str, *, missing: list[str], diagnostic: str = "") -> None:
        super().__init__(message, step="aggregate", diagnostic=diagnostic)
        self.missing = list(missing)


class PublishCancelled(PromotionError):
    """The run was cancelled before this unit finished publishing."""


class InvalidStepTransition(RuntimeError):
    """Raised when a publish step transition is not valid."""
