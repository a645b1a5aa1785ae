"""Analyze the hideout part of the catalog for planning views."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable

from .models import Catalog, ItemRequirement, Station, StationLevel

if TYPE_CHECKING:
    from tracker.graph import DependencyGraph

logger = logging.getLogger(__name__)


@dataclass
class HideoutContext:
    """Analyzed snapshot of the hideout stations."""

    stations: list[Station] = field(default_factory=list)

    # Analysis results
    stations_by_name: dict[str, Station] = field(default_factory=dict)
    modules_by_station: dict[str, list[StationLevel]] = field(default_factory=dict)
    modules_by_id: dict[str, StationLevel] = field(default_factory=dict)
    max_station_levels: dict[str, int] = field(default_factory=dict)
    needed_items: dict[str, int] = field(default_factory=dict)
    remaining_modules: list[str] = field(default_factory=list)

    def station(self, name: str) -> Station | None:
        """Look a station up by display name or normalized name, any case."""
        return self.stations_by_name.get(name.strip().lower())

    def module(self, module_id: str) -> StationLevel | None:
        return self.modules_by_id.get(module_id)

    def items_for_module(self, module_id: str) -> list[ItemRequirement]:
        level = self.modules_by_id.get(module_id)
        return list(level.item_requirements) if level else []

    def modules_requiring_item(self, item_id: str) -> list[StationLevel]:
        """Station levels with ``item_id`` among their requirements, in station order."""
        return [
            level
            for levels in self.modules_by_station.values()
            for level in levels
            if any(req.item_id == item_id for req in level.item_requirements)
        ]


def analyze_hideout(catalog: Catalog, built: Iterable[str] | None = None) -> HideoutContext:
    """Index the stations and total the item requirements of unbuilt levels.

    ``built`` holds station level ids already completed; their requirements
    are left out of ``needed_items``.
    """
    done = set(built or ())
    ctx = HideoutContext(stations=list(catalog.stations))
    needed: dict[str, int] = defaultdict(int)

    for station in catalog.stations:
        for key in (station.name, station.normalized_name):
            if key:
                ctx.stations_by_name.setdefault(key.lower(), station)
        levels = sorted(station.levels, key=lambda lvl: lvl.level)
        ctx.modules_by_station[station.id] = levels
        ctx.max_station_levels[station.id] = max((lvl.level for lvl in levels), default=0)

        for level in levels:
            ctx.modules_by_id.setdefault(level.id, level)
            if level.id in done:
                continue
            ctx.remaining_modules.append(level.id)
            for req in level.item_requirements:
                if req.item_id:
                    needed[req.item_id] += req.count

    ctx.needed_items = dict(needed)
    logger.debug(
        "Hideout analysis: %d stations, %d modules remaining, %d distinct items needed",
        len(ctx.stations),
        len(ctx.remaining_modules),
        len(ctx.needed_items),
    )
    return ctx


def total_construction_time(graph: DependencyGraph, module_id: str) -> float:
    """Seconds of construction for a module plus every module it depends on."""
    return graph.aggregate_numeric_attribute(module_id, "constructionTime")


def _requirement_api(req: ItemRequirement) -> dict[str, Any]:
    return {"id": req.id, "itemId": req.item_id, "itemName": req.item_name, "count": req.count}


@dataclass
class HideoutPlan:
    """What is left to build, optionally narrowed to one module or one item."""

    remaining_modules: list[str]
    needed_items: dict[str, int]
    module: StationLevel | None = None
    module_built: bool = False
    total_construction_time: float = 0
    item_id: str | None = None
    modules_requiring_item: list[str] = field(default_factory=list)

    def to_api(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "remainingModules": self.remaining_modules,
            "neededItems": self.needed_items,
        }
        if self.module is not None:
            out["module"] = {
                "id": self.module.id,
                "stationId": self.module.station_id,
                "level": self.module.level,
                "built": self.module_built,
                "items": [_requirement_api(req) for req in self.module.item_requirements],
                "totalConstructionTime": self.total_construction_time,
            }
        if self.item_id is not None:
            out["modulesRequiringItem"] = {"itemId": self.item_id, "modules": self.modules_requiring_item}
        return out


def plan_hideout(
    ctx: HideoutContext,
    graph: DependencyGraph,
    module_id: str | None = None,
    item_id: str | None = None,
) -> HideoutPlan:
    plan = HideoutPlan(remaining_modules=list(ctx.remaining_modules), needed_items=dict(ctx.needed_items))
    if module_id:
        plan.module = ctx.module(module_id)
        plan.module_built = module_id not in ctx.remaining_modules
        plan.total_construction_time = total_construction_time(graph, module_id)
    if item_id:
        plan.item_id = item_id
        plan.modules_requiring_item = [level.id for level in ctx.modules_requiring_item(item_id)]
    return plan
