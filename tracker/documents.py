"""Document persistence: a small key/value document contract and two stores.

Documents are JSON objects addressed by ``(collection, id)``. Updates use
dotted field paths (``pvp.taskCompletions.<id>.complete``) so a write can
target one nested key without clobbering its siblings. ``DELETE_FIELD`` as a
value removes the key instead of setting it.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from .errors import NotFound

logger = logging.getLogger(__name__)


class _DeleteField:
    _instance: _DeleteField | None = None

    def __new__(cls) -> _DeleteField:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Field-path helpers ──────────────────────────────────────────


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Merge ``patch`` into a copy of ``base``; nested dicts merge, others replace."""
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if value is DELETE_FIELD:
            merged.pop(key, None)
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = _strip_deletes(copy.deepcopy(value))
    return merged


def _strip_deletes(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _strip_deletes(v) for k, v in value.items() if v is not DELETE_FIELD}
    return value


def apply_field_paths(doc: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``doc`` with each dotted path set (or deleted)."""
    result = copy.deepcopy(doc)
    for path, value in updates.items():
        parts = [p for p in path.split(".") if p]
        if not parts:
            raise ValueError(f"Invalid field path: {path!r}")
        node = result
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                if value is DELETE_FIELD:
                    node = None
                    break
                child = {}
                node[part] = child
            node = child
        if node is None:
            continue
        if value is DELETE_FIELD:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = _strip_deletes(copy.deepcopy(value))
    return result


def get_path(doc: dict[str, Any] | None, path: str, default: Any = None) -> Any:
    node: Any = doc
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


# ── Store contract ──────────────────────────────────────────────


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...

    async def set(
        self, collection: str, doc_id: str, fields: dict[str, Any], merge: bool = False
    ) -> None: ...

    async def update(self, collection: str, doc_id: str, field_paths: dict[str, Any]) -> None: ...

    async def create(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def list_ids(self, collection: str) -> list[str]: ...


class MemoryDocumentStore:
    """Dict-backed store, for tests and embedding."""

    def __init__(self, initial: dict[str, dict[str, dict[str, Any]]] | None = None):
        self._data: dict[str, dict[str, dict[str, Any]]] = copy.deepcopy(initial or {})

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._data.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(
        self, collection: str, doc_id: str, fields: dict[str, Any], merge: bool = False
    ) -> None:
        docs = self._data.setdefault(collection, {})
        if merge and doc_id in docs:
            docs[doc_id] = deep_merge(docs[doc_id], fields)
        else:
            docs[doc_id] = _strip_deletes(copy.deepcopy(fields))

    async def update(self, collection: str, doc_id: str, field_paths: dict[str, Any]) -> None:
        docs = self._data.setdefault(collection, {})
        if doc_id not in docs:
            raise NotFound(f"No document {collection}/{doc_id} to update")
        docs[doc_id] = apply_field_paths(docs[doc_id], field_paths)

    async def create(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        docs = self._data.setdefault(collection, {})
        if doc_id in docs:
            return False
        docs[doc_id] = _strip_deletes(copy.deepcopy(fields))
        return True

    async def delete(self, collection: str, doc_id: str) -> None:
        self._data.get(collection, {}).pop(doc_id, None)

    async def list_ids(self, collection: str) -> list[str]:
        return sorted(self._data.get(collection, {}))


_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,       -- JSON object
    updated_at TEXT,
    PRIMARY KEY (collection, id)
);
"""


class SQLiteDocumentStore:
    """JSON documents in a single SQLite table.

    Usage::

        async with SQLiteDocumentStore("data/progress.db") as store:
            doc = await store.get("progress", user_id)
    """

    def __init__(self, db_path: str | Path):
        self._path = Path(db_path)
        self._db: aiosqlite.Connection | None = None
        # Serializes read-modify-write so concurrent updates keep each other's fields
        self._write_lock = asyncio.Lock()

    async def open(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._path))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        logger.debug("Document store ready at %s", self._path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> SQLiteDocumentStore:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Document store is not open")
        return self._db

    async def _read(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        cursor = await self._conn().execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ? LIMIT 1",
            (collection, doc_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def _write(self, collection: str, doc_id: str, doc: dict[str, Any]) -> None:
        await self._conn().execute(
            "INSERT INTO documents (collection, id, data, updated_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(collection, id) DO UPDATE SET data=excluded.data, updated_at=excluded.updated_at",
            (collection, doc_id, json.dumps(doc), _now_iso()),
        )
        await self._conn().commit()
        logger.debug("Wrote %s/%s", collection, doc_id)

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        return await self._read(collection, doc_id)

    async def set(
        self, collection: str, doc_id: str, fields: dict[str, Any], merge: bool = False
    ) -> None:
        async with self._write_lock:
            current = await self._read(collection, doc_id) if merge else None
            if current is not None:
                doc = deep_merge(current, fields)
            else:
                doc = _strip_deletes(copy.deepcopy(fields))
            await self._write(collection, doc_id, doc)

    async def update(self, collection: str, doc_id: str, field_paths: dict[str, Any]) -> None:
        async with self._write_lock:
            current = await self._read(collection, doc_id)
            if current is None:
                raise NotFound(f"No document {collection}/{doc_id} to update")
            await self._write(collection, doc_id, apply_field_paths(current, field_paths))

    async def create(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        """Insert the document only if absent; ``False`` if it already existed."""
        async with self._write_lock:
            if await self._read(collection, doc_id) is not None:
                return False
            await self._write(collection, doc_id, _strip_deletes(copy.deepcopy(fields)))
            return True

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._conn().execute(
            "DELETE FROM documents WHERE collection = ? AND id = ?", (collection, doc_id)
        )
        await self._conn().commit()

    async def list_ids(self, collection: str) -> list[str]:
        cursor = await self._conn().execute(
            "SELECT id FROM documents WHERE collection = ? ORDER BY id", (collection,)
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]
