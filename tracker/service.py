"""Progress service: the operations exposed to the transport layer.

Every mutation runs in two phases:

1. validate the request, then commit the primary change;
2. dispatch dependency propagation as an independent task.

Callers only ever learn the outcome of phase 1. Phase 2 failures end up in
the log, never in the result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from gamemode import DEFAULT_GAME_MODE, default_mode_state, default_state, needs_migration
from tarkov.client import CatalogSource
from tarkov.hideout import HideoutPlan, analyze_hideout, plan_hideout
from tarkov.models import Catalog

from .aggregator import ProgressView, TeamProgressView, aggregate_team, format_record, team_member_ids
from .documents import DocumentStore
from .errors import CatalogUnavailable, EmptyUpdate, InvalidGameMode, InvalidState, NotFound, ProgressError
from .graph import (
    KIND_HIDEOUT_MODULE,
    KIND_HIDEOUT_PART,
    KIND_TASK,
    KIND_TASK_OBJECTIVE,
    DependencyGraph,
    GraphCache,
)
from .propagation import PropagationResult, propagate
from .state import (
    COLLECTION_FOR_KIND,
    OBJECTIVE_STATES,
    ProgressEntry,
    TaskStatus,
    entry_transition,
    now_ms,
    parse_count,
    parse_game_mode,
    parse_level,
    parse_status,
    status_of,
    transition_fields,
)
from .store import PROGRESS, SYSTEM, TEAM, USER, ProgressStore

logger = logging.getLogger(__name__)

_GRAPH_KINDS = (KIND_TASK, KIND_HIDEOUT_MODULE)


@dataclass
class ProgressContext:
    """Everything one request works against; passed explicitly, never global."""

    actor_id: str
    store: ProgressStore
    graph: DependencyGraph | None = None


@dataclass
class UpdateResult:
    message: str
    data: dict[str, Any] = field(default_factory=dict)


class ProgressService:
    """Read and mutate player progress."""

    def __init__(
        self,
        documents: DocumentStore,
        catalog_source: CatalogSource,
        default_game_mode: str = DEFAULT_GAME_MODE,
    ):
        self._documents = documents
        self._default_game_mode = default_game_mode
        self._catalog_source = catalog_source
        self._graphs = GraphCache()
        self._pending: set[asyncio.Task] = set()

    def context(self, actor_id: str) -> ProgressContext:
        return ProgressContext(actor_id=actor_id, store=self._store(actor_id))

    def _store(self, actor_id: str) -> ProgressStore:
        return ProgressStore(self._documents, actor_id, source_mode=self._default_game_mode)

    async def _load_catalog(self, actor_id: str) -> Catalog:
        catalog = await self._catalog_source.load_catalog()
        if catalog is None:
            logger.error("Failed to load essential Tarkov data (tasks or hideout) for %s", actor_id)
            raise CatalogUnavailable("Failed to load essential game data.")
        return catalog

    # ── Reads ───────────────────────────────────────────────────

    async def get_progress(self, actor_id: str, mode: str | None = None) -> ProgressView:
        mode = parse_game_mode(mode)
        ctx = self.context(actor_id)
        record, catalog = await asyncio.gather(
            ctx.store.load(persist_migration=False),
            self._catalog_source.load_catalog(),
        )
        if catalog is None:
            logger.error("Failed to load essential Tarkov data (tasks or hideout) for %s", actor_id)
            raise CatalogUnavailable("Failed to load essential game data.")
        if record is None:
            logger.warning("Progress document not found for user %s", actor_id)
            raise NotFound(f"No progress found for {actor_id}")
        ctx.graph = self._graphs.get(catalog)
        return format_record(record, actor_id, catalog, ctx.graph, mode)

    async def get_team_progress(self, actor_id: str, mode: str | None = None) -> TeamProgressView:
        mode = parse_game_mode(mode)
        system_doc, user_doc, catalog = await asyncio.gather(
            self._documents.get(SYSTEM, actor_id),
            self._documents.get(USER, actor_id),
            self._catalog_source.load_catalog(),
        )
        if catalog is None:
            logger.error("Failed to load essential Tarkov data for team progress of %s", actor_id)
            raise CatalogUnavailable("Failed to load essential game data for team.")
        graph = self._graphs.get(catalog)

        team_id = (system_doc or {}).get("team")
        hidden = (user_doc or {}).get("teamHide") or {}
        members: list[str] = []
        if team_id:
            team_doc = await self._documents.get(TEAM, team_id)
            if team_doc is None:
                logger.warning("Team document %s not found for user %s", team_id, actor_id)
            else:
                members = list(team_doc.get("members") or [])

        member_ids = team_member_ids(actor_id, members)
        loaded = await asyncio.gather(
            *(self._store(member).load(persist_migration=False) for member in member_ids)
        )
        records = dict(zip(member_ids, loaded))
        if mode is None and records.get(actor_id) is not None:
            mode = records[actor_id].current_game_mode
        return aggregate_team(actor_id, member_ids, records, catalog, graph, hidden=hidden, mode=mode)

    async def get_entry(
        self, actor_id: str, kind: str, entry_id: str, mode: str | None = None
    ) -> ProgressEntry:
        if kind not in COLLECTION_FOR_KIND:
            raise ProgressError(f"Unknown entry kind {kind!r}.", status_code=400)
        mode = parse_game_mode(mode)
        entry = await self._store(actor_id).get_entry(kind, entry_id, mode)
        if entry is None:
            raise NotFound(f"No {kind} progress for {entry_id}")
        return entry

    async def get_hideout_plan(
        self,
        actor_id: str,
        module_id: str | None = None,
        item_id: str | None = None,
        mode: str | None = None,
    ) -> HideoutPlan:
        """Remaining modules and items, from the player's built station levels."""
        mode = parse_game_mode(mode)
        record, catalog = await asyncio.gather(
            self._store(actor_id).load(persist_migration=False),
            self._catalog_source.load_catalog(),
        )
        if catalog is None:
            logger.error("Failed to load essential Tarkov data (tasks or hideout) for %s", actor_id)
            raise CatalogUnavailable("Failed to load essential game data.")
        graph = self._graphs.get(catalog)

        built: set[str] = set()
        if record is not None:
            modules = record.bucket(mode).get(COLLECTION_FOR_KIND[KIND_HIDEOUT_MODULE]) or {}
            built = {module for module, entry in modules.items() if status_of(entry) is TaskStatus.COMPLETED}
        hideout = analyze_hideout(catalog, built)
        if module_id and hideout.module(module_id) is None:
            raise NotFound(f"Unknown hideout module {module_id}")
        return plan_hideout(hideout, graph, module_id=module_id, item_id=item_id)

    # ── Writes ──────────────────────────────────────────────────

    async def set_level(self, actor_id: str, level: Any, mode: str | None = None) -> UpdateResult:
        value = parse_level(level)
        mode = parse_game_mode(mode)
        ctx = self.context(actor_id)
        record = await ctx.store.load_or_create()
        mode = mode or record.current_game_mode
        await ctx.store.set_fields({mode: {"level": value}})
        return UpdateResult("Level updated successfully.", {"level": value})

    async def set_task_state(
        self, actor_id: str, task_id: str, state: Any, mode: str | None = None
    ) -> UpdateResult:
        if not task_id:
            raise EmptyUpdate("Task ID is required.")
        status = parse_status(state)
        mode = parse_game_mode(mode)
        ctx = self.context(actor_id)
        record = await ctx.store.load_or_create()
        mode = mode or record.current_game_mode

        await ctx.store.write_entry(KIND_TASK, task_id, entry_transition(KIND_TASK, status), mode)
        self._dispatch(ctx, KIND_TASK, task_id, status, mode)
        return UpdateResult("Task updated successfully.", {"taskId": task_id, "state": status.value})

    async def set_tasks_state(
        self, actor_id: str, updates: dict[str, Any], mode: str | None = None
    ) -> UpdateResult:
        if not isinstance(updates, dict) or not updates:
            raise EmptyUpdate("Invalid request body format.")
        parsed: dict[str, TaskStatus] = {}
        for task_id, state in updates.items():
            try:
                parsed[task_id] = parse_status(state)
            except InvalidState:
                logger.warning(
                    "Invalid status found in batch update: user=%s task=%s status=%r", actor_id, task_id, state
                )
                raise
        mode = parse_game_mode(mode)
        ctx = self.context(actor_id)
        record = await ctx.store.load_or_create()
        mode = mode or record.current_game_mode

        stamp = now_ms()
        changes: dict[str, Any] = {}
        for task_id, status in parsed.items():
            changes.update(transition_fields(mode, KIND_TASK, task_id, status, stamp))
        await ctx.store.write_many(changes)

        for task_id, status in parsed.items():
            self._dispatch(ctx, KIND_TASK, task_id, status, mode)
        return UpdateResult(
            "Tasks updated successfully.",
            {"updated": {task_id: status.value for task_id, status in parsed.items()}},
        )

    async def _set_countable(
        self,
        kind: str,
        actor_id: str,
        entry_id: str,
        state: Any,
        count: Any,
        mode: str | None,
    ) -> tuple[TaskStatus | None, int | None]:
        if not entry_id:
            raise EmptyUpdate("An objective ID is required.")
        if (state is None or state == "") and count is None:
            raise EmptyUpdate("Either state or count must be provided.")
        status = parse_status(state, OBJECTIVE_STATES) if state not in (None, "") else None
        value = parse_count(count) if count is not None else None
        mode = parse_game_mode(mode)
        ctx = self.context(actor_id)
        record = await ctx.store.load_or_create()
        mode = mode or record.current_game_mode

        fields: dict[str, Any] = {}
        if status is not None:
            fields.update(entry_transition(kind, status))
        if value is not None:
            fields["count"] = value
        await ctx.store.write_entry(kind, entry_id, fields, mode)
        if status is not None:
            self._dispatch(ctx, kind, entry_id, status, mode)
        return status, value

    async def set_objective(
        self,
        actor_id: str,
        objective_id: str,
        state: Any = None,
        count: Any = None,
        mode: str | None = None,
    ) -> UpdateResult:
        status, value = await self._set_countable(KIND_TASK_OBJECTIVE, actor_id, objective_id, state, count, mode)
        data: dict[str, Any] = {"objectiveId": objective_id}
        if status is not None:
            data["state"] = status.value
        if value is not None:
            data["count"] = value
        return UpdateResult("Task objective updated successfully.", data)

    async def set_hideout_module(
        self, actor_id: str, module_id: str, state: Any, mode: str | None = None
    ) -> UpdateResult:
        if state in (None, ""):
            raise EmptyUpdate("A state must be provided.")
        status, _ = await self._set_countable(KIND_HIDEOUT_MODULE, actor_id, module_id, state, None, mode)
        return UpdateResult("Hideout module updated successfully.", {"moduleId": module_id, "state": status.value})

    async def set_hideout_part(
        self,
        actor_id: str,
        part_id: str,
        state: Any = None,
        count: Any = None,
        mode: str | None = None,
    ) -> UpdateResult:
        status, value = await self._set_countable(KIND_HIDEOUT_PART, actor_id, part_id, state, count, mode)
        data: dict[str, Any] = {"partId": part_id}
        if status is not None:
            data["state"] = status.value
        if value is not None:
            data["count"] = value
        return UpdateResult("Hideout part updated successfully.", data)

    async def switch_game_mode(self, actor_id: str, mode: str) -> UpdateResult:
        if mode is None:
            raise InvalidGameMode("A game mode must be provided.")
        mode = parse_game_mode(mode)
        ctx = self.context(actor_id)
        await ctx.store.load_or_create()
        await ctx.store.write_many({"currentGameMode": mode})
        return UpdateResult("Game mode switched.", {"currentGameMode": mode})

    async def reset_game_mode(self, actor_id: str, mode: str | None = None) -> UpdateResult:
        mode = parse_game_mode(mode)
        ctx = self.context(actor_id)
        record = await ctx.store.load()
        if record is None:
            raise NotFound(f"No progress found for {actor_id}")
        mode = mode or record.current_game_mode
        await ctx.store.write_many({mode: default_mode_state()})
        logger.info("Reset %s progress for %s", mode, actor_id)
        return UpdateResult(f"Reset {mode} progress.", {"gameMode": mode})

    async def reset_profile(self, actor_id: str) -> UpdateResult:
        await self._store(actor_id).replace(default_state(self._default_game_mode))
        logger.info("Reset full profile for %s", actor_id)
        return UpdateResult("Profile reset.")

    async def migrate_record(self, actor_id: str) -> bool:
        """Persist the dual-mode shape for one record; ``True`` if it changed."""
        raw = await self._documents.get(PROGRESS, actor_id)
        if raw is None:
            raise NotFound(f"No progress found for {actor_id}")
        if not needs_migration(raw):
            return False
        await self._store(actor_id).load()
        return True

    # ── Propagation (phase 2) ───────────────────────────────────

    def _dispatch(self, ctx: ProgressContext, kind: str, source_id: str, status: TaskStatus, mode: str) -> None:
        if kind not in _GRAPH_KINDS:
            return
        task = asyncio.create_task(self._run_propagation(ctx, source_id, status, mode))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_propagation(
        self, ctx: ProgressContext, source_id: str, status: TaskStatus, mode: str
    ) -> PropagationResult | None:
        try:
            catalog = await self._load_catalog(ctx.actor_id)
            ctx.graph = self._graphs.get(catalog)
            return await propagate(ctx.store, ctx.graph, source_id, status, mode)
        except Exception as exc:
            # The primary change is already committed; derived flags catch up later.
            logger.error(
                "Error updating task dependencies: %s (user=%s objective=%s state=%s)",
                exc,
                ctx.actor_id,
                source_id,
                status.value,
                exc_info=True,
            )
            return None

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every dispatched propagation to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
