"""Tests for field-path updates and the document stores."""

from __future__ import annotations

import asyncio

import pytest

from tracker.documents import (
    DELETE_FIELD,
    MemoryDocumentStore,
    SQLiteDocumentStore,
    apply_field_paths,
    deep_merge,
    get_path,
)
from tracker.errors import NotFound


class TestFieldPaths:
    def test_sets_nested_key_without_touching_siblings(self):
        doc = {"pvp": {"taskCompletions": {"t1": {"complete": True, "timestamp": 5}}, "level": 3}}
        out = apply_field_paths(doc, {"pvp.taskCompletions.t1.complete": False})
        assert out["pvp"]["taskCompletions"]["t1"] == {"complete": False, "timestamp": 5}
        assert out["pvp"]["level"] == 3
        # Input is not mutated
        assert doc["pvp"]["taskCompletions"]["t1"]["complete"] is True

    def test_creates_intermediate_maps(self):
        out = apply_field_paths({}, {"pve.hideoutParts.p1.count": 4})
        assert out == {"pve": {"hideoutParts": {"p1": {"count": 4}}}}

    def test_delete_field_removes_key(self):
        doc = {"a": {"b": 1, "c": 2}}
        assert apply_field_paths(doc, {"a.b": DELETE_FIELD}) == {"a": {"c": 2}}

    def test_delete_through_missing_path_is_noop(self):
        assert apply_field_paths({"a": 1}, {"x.y.z": DELETE_FIELD}) == {"a": 1}

    def test_empty_path_rejected(self):
        with pytest.raises(ValueError):
            apply_field_paths({}, {"": 1})

    def test_deep_merge(self):
        base = {"pvp": {"level": 1, "displayName": "a"}, "gameEdition": 1}
        merged = deep_merge(base, {"pvp": {"level": 45}, "gameEdition": DELETE_FIELD})
        assert merged == {"pvp": {"level": 45, "displayName": "a"}}

    def test_get_path(self):
        doc = {"a": {"b": {"c": 3}}}
        assert get_path(doc, "a.b.c") == 3
        assert get_path(doc, "a.x", "dflt") == "dflt"
        assert get_path(None, "a") is None


class TestMemoryDocumentStore:
    def test_set_get_update(self):
        async def _run():
            store = MemoryDocumentStore()
            await store.set("progress", "u1", {"a": {"b": 1}})
            await store.update("progress", "u1", {"a.c": 2})
            await store.set("progress", "u1", {"d": 3}, merge=True)
            return await store.get("progress", "u1")

        assert asyncio.run(_run()) == {"a": {"b": 1, "c": 2}, "d": 3}

    def test_returned_docs_are_copies(self):
        async def _run():
            store = MemoryDocumentStore({"progress": {"u1": {"a": 1}}})
            doc = await store.get("progress", "u1")
            doc["a"] = 99
            return await store.get("progress", "u1")

        assert asyncio.run(_run()) == {"a": 1}

    def test_update_missing_doc_raises(self):
        with pytest.raises(NotFound):
            asyncio.run(MemoryDocumentStore().update("progress", "ghost", {"a": 1}))

    def test_delete_and_list(self):
        async def _run():
            store = MemoryDocumentStore({"progress": {"b": {}, "a": {}}})
            await store.delete("progress", "b")
            return await store.list_ids("progress"), await store.list_ids("team")

        assert asyncio.run(_run()) == (["a"], [])


class TestSQLiteDocumentStore:
    def test_roundtrip(self, tmp_path):
        async def _run():
            async with SQLiteDocumentStore(tmp_path / "docs.db") as store:
                assert await store.get("progress", "u1") is None
                await store.set("progress", "u1", {"pvp": {"level": 1, "taskCompletions": {}}})
                await store.update(
                    "progress",
                    "u1",
                    {"pvp.taskCompletions.t1.complete": True, "pvp.level": DELETE_FIELD},
                )
                await store.set("progress", "u1", {"currentGameMode": "pvp"}, merge=True)
                return await store.get("progress", "u1"), await store.list_ids("progress")

        doc, ids = asyncio.run(_run())
        assert doc == {"pvp": {"taskCompletions": {"t1": {"complete": True}}}, "currentGameMode": "pvp"}
        assert ids == ["u1"]

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "nested" / "docs.db"

        async def _write():
            async with SQLiteDocumentStore(path) as store:
                await store.set("team", "team1", {"members": ["a", "b"]})

        async def _read():
            async with SQLiteDocumentStore(path) as store:
                return await store.get("team", "team1")

        asyncio.run(_write())
        assert asyncio.run(_read()) == {"members": ["a", "b"]}

    def test_update_missing_doc_raises(self, tmp_path):
        async def _run():
            async with SQLiteDocumentStore(tmp_path / "docs.db") as store:
                await store.update("progress", "ghost", {"a": 1})

        with pytest.raises(NotFound):
            asyncio.run(_run())

    def test_delete(self, tmp_path):
        async def _run():
            async with SQLiteDocumentStore(tmp_path / "docs.db") as store:
                await store.set("user", "u1", {"teamHide": {}})
                await store.delete("user", "u1")
                return await store.get("user", "u1")

        assert asyncio.run(_run()) is None

    def test_closed_store_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            asyncio.run(SQLiteDocumentStore(tmp_path / "docs.db").get("progress", "u1"))

    def test_concurrent_updates_keep_each_others_fields(self, tmp_path):
        async def _run():
            async with SQLiteDocumentStore(tmp_path / "docs.db") as store:
                await store.set("progress", "u1", {"pvp": {}})
                await asyncio.gather(
                    *(store.update("progress", "u1", {f"pvp.taskCompletions.t{i}.complete": True}) for i in range(10)),
                    store.set("progress", "u1", {"pvp": {"level": 7}}, merge=True),
                )
                return await store.get("progress", "u1")

        doc = asyncio.run(_run())
        assert sorted(doc["pvp"]["taskCompletions"]) == sorted(f"t{i}" for i in range(10))
        assert doc["pvp"]["level"] == 7

    def test_create_only_when_absent(self, tmp_path):
        async def _run():
            async with SQLiteDocumentStore(tmp_path / "docs.db") as store:
                created = await asyncio.gather(
                    store.create("progress", "u1", {"owner": "a"}),
                    store.create("progress", "u1", {"owner": "b"}),
                )
                return created, await store.get("progress", "u1")

        created, doc = asyncio.run(_run())
        assert sorted(created) == [False, True]
        assert doc == {"owner": "a"}


def test_memory_create_only_when_absent():
    async def _run():
        store = MemoryDocumentStore({"progress": {"u1": {"level": 3}}})
        return await store.create("progress", "u1", {}), await store.create("progress", "u2", {"level": 1}), store

    existing, fresh, store = asyncio.run(_run())
    assert (existing, fresh) == (False, True)
    assert asyncio.run(store.get("progress", "u1")) == {"level": 3}
