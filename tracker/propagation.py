"""Dependency propagation after a committed status change.

Only derived fields are written here: ``invalid`` flags on dependents,
alternative tasks failed (or restored) by the change, and objectives of a
completed task. The primary change is already stored by the time this runs,
and every pass recomputes from the current graph + stored statuses, so
passes may run in any order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import DependencyLookupFailed
from .graph import KIND_TASK, KIND_TASK_OBJECTIVE, DependencyGraph
from .state import (
    COLLECTION_FOR_KIND,
    TaskStatus,
    entry_path,
    now_ms,
    status_of,
    transition_fields,
)
from .store import ProgressStore

logger = logging.getLogger(__name__)


@dataclass
class PropagationResult:
    source_id: str
    status: TaskStatus
    changes: dict[str, Any] = field(default_factory=dict)
    invalidated: list[str] = field(default_factory=list)
    revalidated: list[str] = field(default_factory=list)
    alternatives_failed: list[str] = field(default_factory=list)
    alternatives_restored: list[str] = field(default_factory=list)


def plan_propagation(
    graph: DependencyGraph,
    bucket: dict[str, Any],
    source_id: str,
    status: TaskStatus,
    mode: str,
    timestamp: int | None = None,
) -> PropagationResult:
    """Compute the derived field changes caused by ``source_id`` entering ``status``."""
    kind = graph.kind(source_id)
    if kind is None:
        raise DependencyLookupFailed(f"Objective {source_id} is not in the dependency graph")

    stamp = timestamp if timestamp is not None else now_ms()
    result = PropagationResult(source_id=source_id, status=status)

    def entries_of(node_kind: str) -> dict[str, Any]:
        return bucket.get(COLLECTION_FOR_KIND[node_kind], {}) or {}

    statuses: dict[str, TaskStatus] = {}
    stored_invalid: dict[str, bool] = {}
    for node_kind in {kind, KIND_TASK}:
        for entry_id, entry in entries_of(node_kind).items():
            if isinstance(entry, dict):
                statuses[entry_id] = status_of(entry)
                stored_invalid[entry_id] = bool(entry.get("invalid", False))
    statuses[source_id] = status

    roots = {source_id}
    if kind == KIND_TASK:
        tasks = entries_of(KIND_TASK)
        for alt in sorted(graph.alternatives(source_id)):
            current = statuses.get(alt, TaskStatus.UNCOMPLETED)
            if status is TaskStatus.COMPLETED and current is TaskStatus.UNCOMPLETED:
                result.changes.update(transition_fields(mode, KIND_TASK, alt, TaskStatus.FAILED, stamp))
                result.changes[f"{entry_path(mode, KIND_TASK, alt)}.failedBy"] = source_id
                statuses[alt] = TaskStatus.FAILED
                result.alternatives_failed.append(alt)
                roots.add(alt)
            elif (
                status is not TaskStatus.COMPLETED
                and current is TaskStatus.FAILED
                and (tasks.get(alt) or {}).get("failedBy") == source_id
            ):
                result.changes.update(transition_fields(mode, KIND_TASK, alt, TaskStatus.UNCOMPLETED, stamp))
                statuses[alt] = TaskStatus.UNCOMPLETED
                result.alternatives_restored.append(alt)
                roots.add(alt)

        if status is TaskStatus.COMPLETED:
            objectives = entries_of(KIND_TASK_OBJECTIVE)
            for objective_id in graph.owned(source_id):
                if not (objectives.get(objective_id) or {}).get("complete"):
                    prefix = entry_path(mode, KIND_TASK_OBJECTIVE, objective_id)
                    result.changes[f"{prefix}.complete"] = True
                    result.changes[f"{prefix}.timestamp"] = stamp

    affected: set[str] = set()
    for root in roots:
        affected |= graph.descendants(root)

    computed: dict[str, bool] = {}
    for node in graph.topological_order(affected):
        preds = graph.predecessors(node)
        if not preds:
            continue
        current = stored_invalid.get(node, False)
        blocked = any(
            statuses.get(p) is TaskStatus.FAILED or computed.get(p, stored_invalid.get(p, False))
            for p in preds
        )
        # Cleared once nothing upstream is failed or invalid any more.
        new_value = blocked
        computed[node] = new_value
        if new_value == current:
            continue

        node_kind = graph.kind(node) or kind
        result.changes[f"{entry_path(mode, node_kind, node)}.invalid"] = new_value
        (result.invalidated if new_value else result.revalidated).append(node)
        if node_kind == KIND_TASK:
            for objective_id in graph.owned(node):
                result.changes[f"{entry_path(mode, KIND_TASK_OBJECTIVE, objective_id)}.invalid"] = new_value
    return result


async def propagate(
    store: ProgressStore,
    graph: DependencyGraph,
    source_id: str,
    status: TaskStatus,
    mode: str,
) -> PropagationResult:
    """Recompute dependents of ``source_id`` and write the derived changes."""
    if not graph.has_node(source_id):
        raise DependencyLookupFailed(f"Objective {source_id} is not in the dependency graph")
    bucket = await store.bucket(mode)
    result = plan_propagation(graph, bucket, source_id, status, mode)
    await store.write_many(result.changes)
    if result.changes:
        logger.info(
            "Propagated %s=%s for %s: %d invalidated, %d revalidated, %d alternatives failed",
            source_id,
            status.value,
            store.actor_id,
            len(result.invalidated),
            len(result.revalidated),
            len(result.alternatives_failed),
        )
    return result
