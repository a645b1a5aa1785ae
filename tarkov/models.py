"""Data models for the tarkov.dev catalog (tasks and hideout stations)."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def _ref_id(value: Any) -> str:
    """Normalize references that may arrive as ``{"id": ...}`` or a bare id."""
    if isinstance(value, dict):
        return _as_text(value.get("id", ""))
    return _as_text(value)


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


@dataclass
class ItemRequirement:
    id: str
    item_id: str
    item_name: str = ""
    count: int = 1
    found_in_raid: bool = False

    @classmethod
    def from_api(cls, data: dict) -> ItemRequirement:
        item = data.get("item") or {}
        count = data.get("count", data.get("quantity", 1))
        return cls(
            id=_as_text(data.get("id", "")),
            item_id=_ref_id(item),
            item_name=_as_text(item.get("name", "")) if isinstance(item, dict) else "",
            count=_as_int(count, 1),
            found_in_raid=bool(data.get("foundInRaid", False)),
        )


@dataclass
class StationLevelRequirement:
    station_id: str
    level: int

    @classmethod
    def from_api(cls, data: dict) -> StationLevelRequirement:
        return cls(
            station_id=_ref_id(data.get("station")),
            level=_as_int(data.get("level", 0)),
        )


@dataclass
class StationLevel:
    id: str
    level: int
    station_id: str = ""
    construction_time: int = 0
    station_level_requirements: list[StationLevelRequirement] = field(default_factory=list)
    item_requirements: list[ItemRequirement] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict, station_id: str = "") -> StationLevel:
        return cls(
            id=_as_text(data.get("id", "")),
            level=_as_int(data.get("level", 0)),
            station_id=station_id,
            construction_time=_as_int(data.get("constructionTime", 0)),
            station_level_requirements=[
                StationLevelRequirement.from_api(r)
                for r in _as_list(data.get("stationLevelRequirements"))
                if isinstance(r, dict)
            ],
            item_requirements=[
                ItemRequirement.from_api(r)
                for r in _as_list(data.get("itemRequirements"))
                if isinstance(r, dict)
            ],
        )


@dataclass
class Station:
    id: str
    name: str = ""
    normalized_name: str = ""
    levels: list[StationLevel] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> Station:
        station_id = _as_text(data.get("id", ""))
        return cls(
            id=station_id,
            name=_as_text(data.get("name", "")),
            normalized_name=_as_text(data.get("normalizedName", "")),
            levels=[
                StationLevel.from_api(level, station_id=station_id)
                for level in _as_list(data.get("levels"))
                if isinstance(level, dict)
            ],
        )

    def level_by_number(self, level: int) -> StationLevel | None:
        """Find a level by its declared number (not its position)."""
        for candidate in self.levels:
            if candidate.level == level:
                return candidate
        return None


@dataclass
class TaskObjective:
    id: str
    type: str = ""
    description: str = ""
    count: int = 0
    optional: bool = False

    @classmethod
    def from_api(cls, data: dict) -> TaskObjective:
        return cls(
            id=_as_text(data.get("id", "")),
            type=_as_text(data.get("type", "")),
            description=_as_text(data.get("description", "")),
            count=_as_int(data.get("count", 0)),
            optional=bool(data.get("optional", False)),
        )


@dataclass
class TaskRequirement:
    task_id: str
    status: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> TaskRequirement:
        return cls(
            task_id=_ref_id(data.get("task")),
            status=[_as_text(s) for s in _as_list(data.get("status"))],
        )


@dataclass
class Task:
    id: str
    name: str = ""
    trader: str = ""
    min_player_level: int = 0
    faction_name: str = "Any"
    objectives: list[TaskObjective] = field(default_factory=list)
    task_requirements: list[TaskRequirement] = field(default_factory=list)
    fail_conditions: list[TaskRequirement] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> Task:
        trader = data.get("trader") or {}
        fail_conditions = [
            TaskRequirement.from_api(cond)
            for cond in _as_list(data.get("failConditions"))
            if isinstance(cond, dict) and cond.get("task")
        ]
        return cls(
            id=_as_text(data.get("id", "")),
            name=_as_text(data.get("name", "")),
            trader=_as_text(trader.get("name", "")) if isinstance(trader, dict) else _as_text(trader),
            min_player_level=_as_int(data.get("minPlayerLevel", 0)),
            faction_name=_as_text(data.get("factionName")) or "Any",
            objectives=[
                TaskObjective.from_api(o)
                for o in _as_list(data.get("objectives"))
                if isinstance(o, dict)
            ],
            task_requirements=[
                TaskRequirement.from_api(r)
                for r in _as_list(data.get("taskRequirements"))
                if isinstance(r, dict) and r.get("task")
            ],
            fail_conditions=fail_conditions,
        )

    @property
    def failed_by(self) -> list[str]:
        """Ids of tasks whose completion fails this one."""
        return [
            cond.task_id
            for cond in self.fail_conditions
            if cond.task_id and any(s.lower().startswith("complete") for s in cond.status)
        ]


@dataclass
class Catalog:
    """Static snapshot of stations and tasks.

    ``version`` is a content hash; equal catalogs share a version, so graph
    caches can key on it.
    """

    stations: list[Station] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    version: str = ""

    @classmethod
    def from_api(cls, data: dict) -> Catalog:
        payload = json.dumps(data, sort_keys=True, default=str)
        return cls(
            stations=[
                Station.from_api(s) for s in _as_list(data.get("hideoutStations")) if isinstance(s, dict)
            ],
            tasks=[Task.from_api(t) for t in _as_list(data.get("tasks")) if isinstance(t, dict)],
            version=hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16],
        )

    def station(self, station_id: str) -> Station | None:
        for station in self.stations:
            if station.id == station_id:
                return station
        return None

    def task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def objective_owners(self) -> dict[str, str]:
        """Map task objective id -> owning task id."""
        return {obj.id: task.id for task in self.tasks for obj in task.objectives if obj.id}

    def part_owners(self) -> dict[str, str]:
        """Map hideout part requirement id -> owning station level id."""
        return {
            req.id: level.id
            for station in self.stations
            for level in station.levels
            for req in level.item_requirements
            if req.id
        }
