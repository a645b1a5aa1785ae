"""Dependency graph over tasks and hideout station levels.

``GraphBuilder`` turns a catalog snapshot into an immutable ``DependencyGraph``.
Edges point from prerequisite to dependent. The graph is rebuilt wholesale for
every catalog snapshot; nothing mutates it afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Union

import networkx as nx

from tarkov.models import Catalog, Station, Task

from .errors import CatalogUnavailable, GraphCycleError

logger = logging.getLogger(__name__)

KIND_TASK = "task"
KIND_TASK_OBJECTIVE = "taskObjective"
KIND_HIDEOUT_MODULE = "hideoutModule"
KIND_HIDEOUT_PART = "hideoutPart"

OBJECTIVE_KINDS = (KIND_TASK, KIND_TASK_OBJECTIVE, KIND_HIDEOUT_MODULE, KIND_HIDEOUT_PART)

Selector = Union[str, Callable[[dict[str, Any]], Any]]


@dataclass(frozen=True)
class Objective:
    """A trackable node as declared by a catalog."""

    id: str
    kind: str = KIND_TASK
    prerequisite_ids: tuple[str, ...] = ()
    attributes: dict[str, Any] = field(default_factory=dict, compare=False)


class DependencyGraph:
    """Read-only query layer over a built graph.

    Unknown ids never raise: they yield empty results, since lookups may
    race a catalog refresh.
    """

    def __init__(
        self,
        graph: nx.DiGraph,
        version: str = "",
        owners: dict[str, str] | None = None,
        alternatives: dict[str, frozenset[str]] | None = None,
    ):
        self._graph = nx.freeze(graph)
        self.version = version
        self._owners = dict(owners or {})
        self._owned: dict[str, list[str]] = {}
        for child, owner in self._owners.items():
            self._owned.setdefault(owner, []).append(child)
        self._alternatives = dict(alternatives or {})
        self._order = {node: idx for idx, node in enumerate(nx.topological_sort(self._graph))}

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def has_node(self, node_id: str) -> bool:
        return self._graph.has_node(node_id)

    def nodes(self) -> frozenset[str]:
        return frozenset(self._graph.nodes)

    def edges(self) -> frozenset[tuple[str, str]]:
        return frozenset(self._graph.edges)

    def kind(self, node_id: str) -> str | None:
        if not self._graph.has_node(node_id):
            return None
        return self._graph.nodes[node_id].get("kind")

    def attributes(self, node_id: str) -> dict[str, Any]:
        if not self._graph.has_node(node_id):
            return {}
        return dict(self._graph.nodes[node_id])

    # ── Neighbours ──────────────────────────────────────────────

    def predecessors(self, node_id: str) -> frozenset[str]:
        if not self._graph.has_node(node_id):
            return frozenset()
        return frozenset(self._graph.predecessors(node_id))

    def successors(self, node_id: str) -> frozenset[str]:
        if not self._graph.has_node(node_id):
            return frozenset()
        return frozenset(self._graph.successors(node_id))

    # ── Transitive closure ──────────────────────────────────────

    def ancestors(self, node_id: str) -> frozenset[str]:
        """Every node that must be satisfied, directly or not, before ``node_id``."""
        if not self._graph.has_node(node_id):
            return frozenset()
        return frozenset(nx.ancestors(self._graph, node_id))

    def descendants(self, node_id: str) -> frozenset[str]:
        """Every node that depends, directly or not, on ``node_id``."""
        if not self._graph.has_node(node_id):
            return frozenset()
        return frozenset(nx.descendants(self._graph, node_id))

    def is_prerequisite_for(self, prerequisite_id: str, node_id: str) -> bool:
        return prerequisite_id in self.ancestors(node_id)

    def aggregate_numeric_attribute(self, node_id: str, selector: Selector) -> float:
        """Sum an attribute over the node and its ancestors, each counted once."""
        if not self._graph.has_node(node_id):
            return 0
        pick = selector if callable(selector) else (lambda attrs: attrs.get(selector, 0))
        total = 0
        for member in {node_id} | self.ancestors(node_id):
            value = pick(self._graph.nodes[member])
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                total += value
        return total

    def topological_order(self, node_ids: Iterable[str]) -> list[str]:
        """Known ids sorted so every prerequisite precedes its dependents."""
        known = {n for n in node_ids if n in self._order}
        return sorted(known, key=self._order.__getitem__)

    # ── Ownership / alternatives ────────────────────────────────

    def owner_of(self, child_id: str) -> str | None:
        """Task owning an objective, or station level owning a part requirement."""
        return self._owners.get(child_id)

    def owned(self, node_id: str) -> list[str]:
        return list(self._owned.get(node_id, []))

    def alternatives(self, node_id: str) -> frozenset[str]:
        """Tasks that fail when ``node_id`` is completed."""
        return self._alternatives.get(node_id, frozenset())


class GraphBuilder:
    """Collect nodes and edges, then freeze them into a ``DependencyGraph``.

    Adding a node or edge that already exists is a no-op, and a repeated node
    id keeps the attributes it was first added with.
    """

    def __init__(self) -> None:
        self._graph = nx.DiGraph()
        self._owners: dict[str, str] = {}
        self._alternatives: dict[str, set[str]] = {}

    def add_node(self, node_id: str, kind: str, **attributes: Any) -> bool:
        if not node_id:
            return False
        if self._graph.has_node(node_id):
            return False
        self._graph.add_node(node_id, kind=kind, **attributes)
        return True

    def add_edge(self, prerequisite_id: str, dependent_id: str) -> bool:
        if self._graph.has_edge(prerequisite_id, dependent_id):
            return False
        if not (self._graph.has_node(prerequisite_id) and self._graph.has_node(dependent_id)):
            logger.warning(
                "Skipping edge %s -> %s: endpoint not in graph", prerequisite_id, dependent_id
            )
            return False
        self._graph.add_edge(prerequisite_id, dependent_id)
        return True

    def add_objectives(self, objectives: Iterable[Objective]) -> GraphBuilder:
        items = list(objectives)
        for obj in items:
            self.add_node(obj.id, obj.kind, **obj.attributes)
        for obj in items:
            for prerequisite_id in obj.prerequisite_ids:
                self.add_edge(prerequisite_id, obj.id)
        return self

    def add_station_levels(self, stations: list[Station]) -> GraphBuilder:
        for station in stations:
            for level in station.levels:
                self.add_node(
                    level.id,
                    KIND_HIDEOUT_MODULE,
                    stationId=station.id,
                    level=level.level,
                    constructionTime=level.construction_time,
                )
                for req in level.item_requirements:
                    if req.id:
                        self._owners.setdefault(req.id, level.id)

        by_id = {station.id: station for station in stations}
        for station in stations:
            for level in station.levels:
                for requirement in level.station_level_requirements:
                    if not requirement.station_id:
                        continue
                    required_station = by_id.get(requirement.station_id)
                    required_level = (
                        required_station.level_by_number(requirement.level) if required_station else None
                    )
                    if required_level is None or not required_level.id:
                        logger.warning(
                            "Could not find required level ID for station %s level %s needed by %s",
                            requirement.station_id,
                            requirement.level,
                            level.id,
                        )
                        continue
                    self.add_edge(required_level.id, level.id)
        return self

    def add_tasks(self, tasks: list[Task]) -> GraphBuilder:
        for task in tasks:
            self.add_node(
                task.id,
                KIND_TASK,
                minPlayerLevel=task.min_player_level,
                factionName=task.faction_name,
            )
            for objective in task.objectives:
                if objective.id:
                    self._owners.setdefault(objective.id, task.id)

        for task in tasks:
            for requirement in task.task_requirements:
                if not self._graph.has_node(requirement.task_id):
                    logger.warning(
                        "Task %s requires unknown task %s; skipping", task.id, requirement.task_id
                    )
                    continue
                self.add_edge(requirement.task_id, task.id)
            for completer in task.failed_by:
                if not self._graph.has_node(completer):
                    logger.warning("Task %s fails on unknown task %s; skipping", task.id, completer)
                    continue
                self._alternatives.setdefault(completer, set()).add(task.id)
        return self

    def build(self, version: str = "") -> DependencyGraph:
        if not nx.is_directed_acyclic_graph(self._graph):
            try:
                cycle = nx.find_cycle(self._graph)
                cycle_str = " -> ".join(edge[0] for edge in cycle)
                raise GraphCycleError(f"Requirement graph contains a cycle: {cycle_str}")
            except nx.NetworkXNoCycle:
                raise GraphCycleError("Requirement graph contains a cycle") from None
        return DependencyGraph(
            self._graph.copy(),
            version=version,
            owners=self._owners,
            alternatives={k: frozenset(v) for k, v in self._alternatives.items()},
        )


def build_graph(catalog: Catalog | None) -> DependencyGraph:
    """Build the combined task + hideout graph for one catalog snapshot."""
    if catalog is None:
        raise CatalogUnavailable("Failed to load essential game data.")
    builder = GraphBuilder()
    builder.add_station_levels(catalog.stations)
    builder.add_tasks(catalog.tasks)
    graph = builder.build(version=catalog.version)
    logger.debug("Built graph %s: %d nodes, %d edges", graph.version, graph.node_count, graph.edge_count)
    return graph


class GraphCache:
    """Hold the graph for the latest catalog snapshot, rebuilding on change."""

    def __init__(self) -> None:
        self._graph: DependencyGraph | None = None

    def get(self, catalog: Catalog | None) -> DependencyGraph:
        if catalog is None:
            raise CatalogUnavailable("Failed to load essential game data.")
        if self._graph is None or not catalog.version or self._graph.version != catalog.version:
            self._graph = build_graph(catalog)
        return self._graph
