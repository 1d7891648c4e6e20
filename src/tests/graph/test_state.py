"""Tests for state containers and run records."""

from typing import List

import pytest
from pydantic import ValidationError

from relaygraph.core.errors import StateUpdateError
from relaygraph.core.graph.state import (
    NodeStatus,
    RunRecord,
    RunState,
    initial_state,
    merge_update,
)


class QAState(RunState):
    message: str = ""
    answers: List[str] = []
    score: int = 0


class TestInitialState:
    """Building a run's starting state."""

    def test_defaults_fill_unset_fields(self):
        state = initial_state(QAState, {"message": "hi"})
        assert state.message == "hi"
        assert state.answers == []
        assert state.score == 0

    def test_unknown_field_rejected(self):
        with pytest.raises(StateUpdateError, match="undeclared"):
            initial_state(QAState, {"mesage": "typo"})

    def test_field_names(self):
        assert QAState.field_names() == frozenset({"message", "answers", "score"})


class TestMergeUpdate:
    """Merging partial updates."""

    def test_merge_returns_new_state(self):
        before = initial_state(QAState, {"message": "hi"})
        after = merge_update(before, {"score": 3})
        assert after is not before
        assert after.score == 3
        assert after.message == "hi"
        assert before.score == 0

    def test_merge_overwrites_lists(self):
        before = initial_state(QAState, {"answers": ["a"]})
        after = merge_update(before, {"answers": ["b", "c"]})
        assert after.answers == ["b", "c"]
        assert before.answers == ["a"]

    def test_empty_update_keeps_state(self):
        state = initial_state(QAState)
        assert merge_update(state, {}) is state

    def test_unknown_field_in_update(self):
        state = initial_state(QAState)
        with pytest.raises(StateUpdateError, match="Node x"):
            merge_update(state, {"unknown": 1}, origin="Node x")

    def test_update_is_validated(self):
        state = initial_state(QAState)
        with pytest.raises(ValidationError):
            merge_update(state, {"score": "not a number"})

    def test_state_is_frozen(self):
        state = initial_state(QAState)
        with pytest.raises(ValidationError):
            state.message = "changed"


class TestRunRecord:
    """Run bookkeeping."""

    def test_steps_and_status(self):
        record = RunRecord(graph="g")
        step = record.start_step("a")
        assert step.status == NodeStatus.RUNNING
        assert step.duration is None

        step.status = NodeStatus.ERROR
        step.error = "boom"
        record.start_step("b")
        record.finish(NodeStatus.ERROR)

        assert record.visited() == ["a", "b"]
        assert record.errors() == {"a": "boom"}
        assert record.status == NodeStatus.ERROR
        assert record.finished_at is not None
