"""Per-actor progress store over the ``progress`` document collection."""

from __future__ import annotations

import logging
from typing import Any

from gamemode import DEFAULT_GAME_MODE, DualModeRecord, default_state, ensure_dual_mode, parse_record

from .documents import DocumentStore, get_path
from .state import COLLECTION_FOR_KIND, ProgressEntry, entry_path

logger = logging.getLogger(__name__)

PROGRESS = "progress"
SYSTEM = "system"
USER = "user"
TEAM = "team"


class ProgressStore:
    """Progress of one actor. Every record passes through migration on load."""

    def __init__(self, documents: DocumentStore, actor_id: str, source_mode: str = DEFAULT_GAME_MODE):
        self._documents = documents
        self.actor_id = actor_id
        self.source_mode = source_mode

    async def load(self, persist_migration: bool = True) -> DualModeRecord | None:
        raw = await self._documents.get(PROGRESS, self.actor_id)
        if raw is None:
            return None
        record = parse_record(raw)
        migrated = ensure_dual_mode(record, self.source_mode)
        if migrated is not record:
            logger.info("Migrated legacy progress record for %s", self.actor_id)
            if persist_migration:
                await self._documents.set(PROGRESS, self.actor_id, migrated.data)
        return migrated

    async def load_or_create(self) -> DualModeRecord:
        """Load the record, creating the default one on first write."""
        record = await self.load()
        if record is not None:
            return record
        record = DualModeRecord(default_state(self.source_mode))
        if await self._documents.create(PROGRESS, self.actor_id, record.data):
            logger.info("Created progress record for %s", self.actor_id)
            return record
        # Another writer created it first
        return await self.load()

    # ── Entries ─────────────────────────────────────────────────

    async def get_entry(self, kind: str, entry_id: str, mode: str | None = None) -> ProgressEntry | None:
        record = await self.load()
        if record is None:
            return None
        bucket = record.bucket(mode)
        stored = bucket.get(COLLECTION_FOR_KIND[kind], {}).get(entry_id)
        if stored is None:
            return None
        return ProgressEntry.from_stored(entry_id, stored)

    async def write_entry(self, kind: str, entry_id: str, fields: dict[str, Any], mode: str) -> None:
        """Merge ``fields`` into one entry; unspecified fields keep their values."""
        prefix = entry_path(mode, kind, entry_id)
        await self.write_many({f"{prefix}.{name}": value for name, value in fields.items()})

    async def write_many(self, changes: dict[str, Any]) -> None:
        """Apply field-path changes in one update call."""
        if not changes:
            return
        await self._documents.update(PROGRESS, self.actor_id, changes)

    async def set_fields(self, fields: dict[str, Any]) -> None:
        await self._documents.set(PROGRESS, self.actor_id, fields, merge=True)

    async def replace(self, data: dict[str, Any]) -> None:
        await self._documents.set(PROGRESS, self.actor_id, data)

    async def bucket(self, mode: str) -> dict[str, Any]:
        record = await self.load()
        if record is None:
            return {}
        return get_path(record.data, mode, {}) or {}
