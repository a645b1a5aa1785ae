"""Public progress views: single-player formatting and team aggregation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from gamemode import DualModeRecord
from tarkov.models import Catalog, Station

from .graph import DependencyGraph

logger = logging.getLogger(__name__)

# Stash levels come with the game edition rather than being built.
STASH_STATION_ID = "5d484fc0654e76006657e0ab"


def _stash_station(catalog: Catalog) -> Station | None:
    for station in catalog.stations:
        if station.id == STASH_STATION_ID or station.normalized_name == "stash":
            return station
    return None


@dataclass
class ProgressView:
    user_id: str
    display_name: str
    player_level: int = 1
    game_edition: int = 1
    pmc_faction: str = "USEC"
    tasks_progress: list[dict[str, Any]] = field(default_factory=list)
    task_objectives_progress: list[dict[str, Any]] = field(default_factory=list)
    hideout_modules_progress: list[dict[str, Any]] = field(default_factory=list)
    hideout_parts_progress: list[dict[str, Any]] = field(default_factory=list)

    def to_api(self) -> dict[str, Any]:
        return {
            "tasksProgress": self.tasks_progress,
            "taskObjectivesProgress": self.task_objectives_progress,
            "hideoutModulesProgress": self.hideout_modules_progress,
            "hideoutPartsProgress": self.hideout_parts_progress,
            "displayName": self.display_name,
            "userId": self.user_id,
            "playerLevel": self.player_level,
            "gameEdition": self.game_edition,
            "pmcFaction": self.pmc_faction,
        }


@dataclass
class TeamProgressView:
    self_id: str
    data: list[ProgressView] = field(default_factory=list)
    hidden_teammates: list[str] = field(default_factory=list)

    def to_api(self) -> dict[str, Any]:
        return {
            "data": [view.to_api() for view in self.data],
            "meta": {"self": self.self_id, "hiddenTeammates": list(self.hidden_teammates)},
        }


def format_objectives(
    entries: dict[str, Any] | None,
    show_count: bool = False,
    show_invalid: bool = False,
    show_failed: bool = False,
) -> list[dict[str, Any]]:
    """Flatten a ``{id: {...}}`` map into ``[{id, complete, ...}]`` items."""
    items: list[dict[str, Any]] = []
    for entry_id, entry in (entries or {}).items():
        if not isinstance(entry, dict):
            continue
        item: dict[str, Any] = {"id": entry_id, "complete": bool(entry.get("complete", False))}
        if show_count:
            item["count"] = entry.get("count", 0)
        if show_invalid:
            item["invalid"] = bool(entry.get("invalid", False))
        if show_failed and "failed" in entry:
            item["failed"] = bool(entry["failed"])
        items.append(item)
    return items


def _item(items: list[dict[str, Any]], entry_id: str, **defaults: Any) -> dict[str, Any]:
    for item in items:
        if item["id"] == entry_id:
            return item
    item = {"id": entry_id, "complete": False, **defaults}
    items.append(item)
    return item


def format_progress(
    bucket: dict[str, Any] | None,
    user_id: str,
    catalog: Catalog,
    graph: DependencyGraph,
    game_edition: int = 1,
) -> ProgressView:
    bucket = bucket or {}
    level = bucket.get("level")
    view = ProgressView(
        user_id=user_id,
        display_name=bucket.get("displayName") or user_id[:6],
        player_level=level if isinstance(level, int) and level >= 1 else 1,
        game_edition=game_edition,
        pmc_faction=bucket.get("pmcFaction") or "USEC",
        tasks_progress=format_objectives(bucket.get("taskCompletions"), show_invalid=True, show_failed=True),
        task_objectives_progress=format_objectives(
            bucket.get("taskObjectives"), show_count=True, show_invalid=True
        ),
        hideout_modules_progress=format_objectives(bucket.get("hideoutModules")),
        hideout_parts_progress=format_objectives(bucket.get("hideoutParts"), show_count=True),
    )

    stash = _stash_station(catalog)
    if stash is not None:
        for level in stash.levels:
            if level.level > view.game_edition:
                continue
            _item(view.hideout_modules_progress, level.id)["complete"] = True
            for req in level.item_requirements:
                part = _item(view.hideout_parts_progress, req.id, count=0)
                part["complete"] = True
                part["count"] = req.count

    # Tasks for the other faction, and everything behind them, are out of reach.
    locked: set[str] = set()
    for task in catalog.tasks:
        if task.faction_name not in ("Any", "", view.pmc_faction):
            locked.add(task.id)
            locked |= graph.descendants(task.id)
    for task_id in locked:
        _item(view.tasks_progress, task_id, invalid=False)["invalid"] = True
    return view


def format_record(
    record: DualModeRecord,
    user_id: str,
    catalog: Catalog,
    graph: DependencyGraph,
    mode: str | None = None,
) -> ProgressView:
    return format_progress(record.bucket(mode), user_id, catalog, graph, game_edition=record.game_edition)


def team_member_ids(requester_id: str, members: list[str] | None) -> list[str]:
    """Team members plus the requester, deduplicated, in order."""
    return list(dict.fromkeys([*(members or []), requester_id]))


def hidden_teammates(requester_id: str, member_ids: list[str], hidden: dict[str, Any] | None) -> list[str]:
    hidden = hidden or {}
    return [member for member in member_ids if member != requester_id and hidden.get(member)]


def aggregate_team(
    requester_id: str,
    member_ids: list[str],
    records: dict[str, DualModeRecord | None],
    catalog: Catalog,
    graph: DependencyGraph,
    hidden: dict[str, Any] | None = None,
    mode: str | None = None,
) -> TeamProgressView:
    views: list[ProgressView] = []
    for member_id in member_ids:
        record = records.get(member_id)
        if record is None:
            logger.warning("Progress document not found for member %s", member_id)
            continue
        views.append(format_record(record, member_id, catalog, graph, mode))
    return TeamProgressView(
        self_id=requester_id,
        data=views,
        hidden_teammates=hidden_teammates(requester_id, member_ids, hidden),
    )
