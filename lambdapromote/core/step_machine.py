"""Per-unit publish step machine.

Enforces:
- Valid step transitions only (VALID_STEP_TRANSITIONS table)
- Strict ordering Build -> Package -> Fingerprint -> Version -> Publish -> Emit
- FAILED / CANCELLED reachable from any non-terminal step
- Every transition recorded, so a resumed publish knows where it stopped
"""

from __future__ import annotations

import threading

from lambdapromote.core.errors import InvalidStepTransition
from lambdapromote.models.publish import (
    VALID_STEP_TRANSITIONS,
    PublishStep,
    StepTransition,
)


class PublishStepMachine:
    """Tracks one unit's progress through the publish sequence.

    Parameters
    ----------
    unit_name:
        The unit being published. One machine per unit per run; machines
        share no state, so units can be published in parallel.
    """

    def __init__(self, unit_name: str) -> None:
        self.unit_name = unit_name
        self._current = PublishStep.PENDING
        self._history: list[StepTransition] = []
        self._lock = threading.Lock()

    @property
    def current(self) -> PublishStep:
        return self._current

    @property
    def history(self) -> list[StepTransition]:
        return list(self._history)

    @property
    def last_active_step(self) -> PublishStep:
        """The last non-terminal step entered (where a failure happened)."""
        for transition in reversed(self._history):
            if transition.to_step not in (PublishStep.FAILED, PublishStep.CANCELLED):
                return transition.to_step
        return PublishStep.PENDING

    def advance(self, target: PublishStep, *, detail: str | None = None) -> StepTransition:
        """Move to *target*, validating against the transition table."""
        with self._lock:
            allowed = VALID_STEP_TRANSITIONS.get(self._current, set())
            if target not in allowed:
                raise InvalidStepTransition(
                    f"Cannot move {self.unit_name} from {self._current.value} "
                    f"to {target.value}. Allowed: {sorted(s.value for s in allowed)}"
                )
            transition = StepTransition(
                unit_name=self.unit_name,
                from_step=self._current,
                to_step=target,
                detail=detail,
            )
            self._history.append(transition)
            self._current = target
            return transition

    def fail(self, detail: str | None = None) -> StepTransition:
        return self.advance(PublishStep.FAILED, detail=detail)

    def cancel(self, detail: str | None = None) -> StepTransition:
        return self.advance(PublishStep.CANCELLED, detail=detail)
