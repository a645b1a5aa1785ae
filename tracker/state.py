"""Objective status model and request validation.

Statuses are stored in the legacy field layout::

    completed    -> complete=True,  failed=False, timestamp=<ms>
    failed       -> complete=True,  failed=True,  timestamp=<ms>
    uncompleted  -> complete=False, failed=False, timestamp removed

Only tasks carry ``failed``; objectives, modules and parts are either
completed or not.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from gamemode import is_game_mode

from .documents import DELETE_FIELD
from .errors import InvalidCount, InvalidGameMode, InvalidState
from .graph import KIND_HIDEOUT_MODULE, KIND_HIDEOUT_PART, KIND_TASK, KIND_TASK_OBJECTIVE


class TaskStatus(str, Enum):
    UNCOMPLETED = "uncompleted"
    COMPLETED = "completed"
    FAILED = "failed"


TASK_STATES = frozenset(TaskStatus)
OBJECTIVE_STATES = frozenset({TaskStatus.UNCOMPLETED, TaskStatus.COMPLETED})

COLLECTION_FOR_KIND = {
    KIND_TASK: "taskCompletions",
    KIND_TASK_OBJECTIVE: "taskObjectives",
    KIND_HIDEOUT_MODULE: "hideoutModules",
    KIND_HIDEOUT_PART: "hideoutParts",
}


def now_ms() -> int:
    return int(time.time() * 1000)


# ── Validation ──────────────────────────────────────────────────


def parse_status(value: Any, allowed: frozenset[TaskStatus] = TASK_STATES) -> TaskStatus:
    try:
        status = TaskStatus(value)
    except ValueError:
        status = None
    if status is None or status not in allowed:
        names = ", ".join(sorted(f"'{s.value}'" for s in allowed))
        raise InvalidState(f"Invalid state {value!r}. Should be one of {names}.")
    return status


def parse_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidCount(f"Count must be a non-negative number, got {value!r}.")
    if isinstance(value, float) and (math.isnan(value) or not value.is_integer()):
        raise InvalidCount(f"Count must be a whole number, got {value!r}.")
    if value < 0:
        raise InvalidCount(f"Count must be a non-negative number, got {value!r}.")
    return int(value)


def parse_level(value: Any) -> int:
    """Accept an int or an integer string (as taken from a URL path segment)."""
    level: int | None = None
    if isinstance(value, int) and not isinstance(value, bool):
        level = value
    elif isinstance(value, str):
        try:
            level = int(value.strip(), 10)
        except ValueError:
            level = None
    if level is None or level < 1:
        raise InvalidCount(f"Invalid level value provided: {value!r}.")
    return level


def parse_game_mode(value: Any) -> str | None:
    if value is None:
        return None
    if not is_game_mode(value):
        raise InvalidGameMode(f"Invalid game mode {value!r}. Should be 'pvp' or 'pve'.")
    return value


# ── Stored entries ──────────────────────────────────────────────


def status_of(entry: dict[str, Any] | None) -> TaskStatus:
    if not entry:
        return TaskStatus.UNCOMPLETED
    if entry.get("failed"):
        return TaskStatus.FAILED
    if entry.get("complete"):
        return TaskStatus.COMPLETED
    return TaskStatus.UNCOMPLETED


@dataclass
class ProgressEntry:
    id: str
    status: TaskStatus = TaskStatus.UNCOMPLETED
    count: int | None = None
    invalid: bool = False
    timestamp: int | None = None
    failed_by: str | None = None

    @classmethod
    def from_stored(cls, entry_id: str, entry: dict[str, Any] | None) -> ProgressEntry:
        entry = entry or {}
        count = entry.get("count")
        return cls(
            id=entry_id,
            status=status_of(entry),
            count=count if isinstance(count, int) and not isinstance(count, bool) else None,
            invalid=bool(entry.get("invalid", False)),
            timestamp=entry.get("timestamp"),
            failed_by=entry.get("failedBy"),
        )

    def to_api(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "state": self.status.value, "invalid": self.invalid}
        if self.count is not None:
            out["count"] = self.count
        if self.timestamp is not None:
            out["timestamp"] = self.timestamp
        if self.failed_by:
            out["failedBy"] = self.failed_by
        return out


def entry_path(mode: str, kind: str, entry_id: str) -> str:
    return f"{mode}.{COLLECTION_FOR_KIND[kind]}.{entry_id}"


def entry_transition(kind: str, status: TaskStatus, timestamp: int | None = None) -> dict[str, Any]:
    """Entry fields that move one entry into ``status``, relative to the entry."""
    stamp = timestamp if timestamp is not None else now_ms()
    fields: dict[str, Any] = {}
    if status is TaskStatus.UNCOMPLETED:
        fields["complete"] = False
        fields["timestamp"] = DELETE_FIELD
    else:
        fields["complete"] = True
        fields["timestamp"] = stamp
    if kind == KIND_TASK:
        fields["failed"] = status is TaskStatus.FAILED
        fields["failedBy"] = DELETE_FIELD
    return fields


def transition_fields(
    mode: str,
    kind: str,
    entry_id: str,
    status: TaskStatus,
    timestamp: int | None = None,
) -> dict[str, Any]:
    """Field-path updates that move one entry into ``status``."""
    prefix = entry_path(mode, kind, entry_id)
    return {f"{prefix}.{name}": value for name, value in entry_transition(kind, status, timestamp).items()}
