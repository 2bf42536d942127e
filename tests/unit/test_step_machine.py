"""Unit tests for the per-unit PublishStepMachine."""

from __future__ import annotations

import pytest

from lambdapromote.core.errors import InvalidStepTransition
from lambdapromote.core.step_machine import PublishStepMachine
from lambdapromote.models.publish import (
    PUBLISH_SEQUENCE,
    VALID_STEP_TRANSITIONS,
    PublishStep,
)


class TestTransitionTable:
    """The table encodes one linear chain plus FAILED/CANCELLED exits."""

    def test_terminal_states_have_no_exits(self):
        for step in (PublishStep.DONE, PublishStep.FAILED, PublishStep.CANCELLED):
            assert VALID_STEP_TRANSITIONS[step] == set()

    def test_every_step_can_fail_or_cancel(self):
        for step in (PublishStep.PENDING, *PUBLISH_SEQUENCE):
            assert PublishStep.FAILED in VALID_STEP_TRANSITIONS[step]
            assert PublishStep.CANCELLED in VALID_STEP_TRANSITIONS[step]


class TestPublishStepMachine:
    """Steps run strictly in order, with no skipping or going back."""

    def test_happy_path(self):
        machine = PublishStepMachine("Foo")
        for step in (*PUBLISH_SEQUENCE, PublishStep.DONE):
            machine.advance(step)

        assert machine.current == PublishStep.DONE
        assert VALID_STEP_TRANSITIONS[machine.current] == set()
        assert [t.to_step for t in machine.history] == [*PUBLISH_SEQUENCE, PublishStep.DONE]

    def test_cannot_skip_build(self):
        machine = PublishStepMachine("Foo")
        with pytest.raises(InvalidStepTransition):
            machine.advance(PublishStep.PACKAGE)

    def test_cannot_publish_before_version(self):
        machine = PublishStepMachine("Foo")
        machine.advance(PublishStep.BUILD)
        machine.advance(PublishStep.PACKAGE)
        machine.advance(PublishStep.FINGERPRINT)
        with pytest.raises(InvalidStepTransition):
            machine.advance(PublishStep.PUBLISH)

    def test_cannot_go_back(self):
        machine = PublishStepMachine("Foo")
        machine.advance(PublishStep.BUILD)
        machine.advance(PublishStep.PACKAGE)
        with pytest.raises(InvalidStepTransition):
            machine.advance(PublishStep.BUILD)

    def test_fail_records_last_active_step(self):
        machine = PublishStepMachine("Foo")
        machine.advance(PublishStep.BUILD)
        machine.fail("compiler error")

        assert machine.current == PublishStep.FAILED
        assert machine.last_active_step == PublishStep.BUILD
        assert machine.history[-1].detail == "compiler error"

    def test_no_transition_out_of_failed(self):
        machine = PublishStepMachine("Foo")
        machine.fail()
        with pytest.raises(InvalidStepTransition):
            machine.advance(PublishStep.BUILD)

    def test_cancel(self):
        machine = PublishStepMachine("Foo")
        machine.cancel("stop")
        assert machine.current == PublishStep.CANCELLED
        assert machine.last_active_step == PublishStep.PENDING

    def test_history_is_a_copy(self):
        machine = PublishStepMachine("Foo")
        machine.advance(PublishStep.BUILD)
        machine.history.clear()
        assert len(machine.history) == 1

    def test_machines_are_independent(self):
        foo, bar = PublishStepMachine("Foo"), PublishStepMachine("Bar")
        foo.advance(PublishStep.BUILD)
        assert bar.current == PublishStep.PENDING
