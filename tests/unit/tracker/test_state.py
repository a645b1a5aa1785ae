"""Tests for status parsing and transition field layout."""

import math

import pytest

from tracker.documents import DELETE_FIELD
from tracker.errors import InvalidCount, InvalidGameMode, InvalidState
from tracker.graph import KIND_HIDEOUT_PART, KIND_TASK, KIND_TASK_OBJECTIVE
from tracker.state import (
    OBJECTIVE_STATES,
    ProgressEntry,
    TaskStatus,
    parse_count,
    parse_game_mode,
    parse_level,
    parse_status,
    status_of,
    transition_fields,
)


class TestParseStatus:
    @pytest.mark.parametrize("value", ["completed", "failed", "uncompleted"])
    def test_task_states(self, value):
        assert parse_status(value).value == value

    @pytest.mark.parametrize("value", ["bogus", "", None, 1, "Completed"])
    def test_rejects_unknown(self, value):
        with pytest.raises(InvalidState):
            parse_status(value)

    def test_objectives_cannot_fail(self):
        with pytest.raises(InvalidState, match="'completed', 'uncompleted'"):
            parse_status("failed", OBJECTIVE_STATES)


class TestParseCount:
    @pytest.mark.parametrize("value,expected", [(0, 0), (7, 7), (3.0, 3)])
    def test_accepts_whole_numbers(self, value, expected):
        assert parse_count(value) == expected

    @pytest.mark.parametrize("value", [-1, "3", True, None, 2.5, math.nan])
    def test_rejects(self, value):
        with pytest.raises(InvalidCount):
            parse_count(value)


class TestParseLevel:
    def test_accepts_int_and_numeric_string(self):
        assert parse_level(45) == 45
        assert parse_level("12") == 12

    @pytest.mark.parametrize("value", [0, -3, "abc", "", "4.5", None, True])
    def test_rejects(self, value):
        with pytest.raises(InvalidCount):
            parse_level(value)


def test_parse_game_mode():
    assert parse_game_mode(None) is None
    assert parse_game_mode("pve") == "pve"
    with pytest.raises(InvalidGameMode):
        parse_game_mode("arena")


class TestTransitionFields:
    def test_completed_task(self):
        fields = transition_fields("pvp", KIND_TASK, "t1", TaskStatus.COMPLETED, timestamp=123)
        assert fields == {
            "pvp.taskCompletions.t1.complete": True,
            "pvp.taskCompletions.t1.timestamp": 123,
            "pvp.taskCompletions.t1.failed": False,
            "pvp.taskCompletions.t1.failedBy": DELETE_FIELD,
        }

    def test_failed_task_counts_as_complete(self):
        fields = transition_fields("pve", KIND_TASK, "t1", TaskStatus.FAILED, timestamp=5)
        assert fields["pve.taskCompletions.t1.complete"] is True
        assert fields["pve.taskCompletions.t1.failed"] is True

    def test_uncompleted_deletes_timestamp(self):
        fields = transition_fields("pvp", KIND_TASK, "t1", TaskStatus.UNCOMPLETED)
        assert fields["pvp.taskCompletions.t1.complete"] is False
        assert fields["pvp.taskCompletions.t1.failed"] is False
        assert fields["pvp.taskCompletions.t1.timestamp"] is DELETE_FIELD

    def test_objectives_have_no_failed_field(self):
        fields = transition_fields("pvp", KIND_TASK_OBJECTIVE, "o1", TaskStatus.COMPLETED, timestamp=1)
        assert set(fields) == {"pvp.taskObjectives.o1.complete", "pvp.taskObjectives.o1.timestamp"}
        parts = transition_fields("pvp", KIND_HIDEOUT_PART, "p1", TaskStatus.UNCOMPLETED)
        assert "pvp.hideoutParts.p1.complete" in parts


def test_status_of_and_entry():
    assert status_of(None) is TaskStatus.UNCOMPLETED
    assert status_of({"complete": True}) is TaskStatus.COMPLETED
    assert status_of({"complete": True, "failed": True}) is TaskStatus.FAILED

    entry = ProgressEntry.from_stored("t4", {"complete": True, "failed": True, "failedBy": "t5", "count": True})
    assert entry.status is TaskStatus.FAILED
    assert entry.failed_by == "t5"
    assert entry.count is None
