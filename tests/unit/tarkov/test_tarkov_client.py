"""Tests for the tarkov.dev client and catalog sources (no network)."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from tarkov.client import JsonCatalogSource, StaticCatalogSource, TarkovDevClient, TarkovDevError


def _client(handler) -> TarkovDevClient:
    return TarkovDevClient(api_url="https://example.test/graphql", transport=httpx.MockTransport(handler))


def test_fetch_catalog_sends_query_and_parses(catalog_data):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen["variables"] = body["variables"]
        assert "hideoutStations" in body["query"]
        return httpx.Response(200, json={"data": catalog_data})

    async def _run():
        async with _client(handler) as api:
            return await api.fetch_catalog()

    catalog = asyncio.run(_run())
    assert len(catalog.tasks) == 7
    assert seen["variables"] == {"lang": "en", "gameMode": "regular"}


def test_http_error_raises_with_status():
    async def _run():
        async with _client(lambda request: httpx.Response(503, text="down")) as api:
            await api.fetch_catalog()

    with pytest.raises(TarkovDevError) as exc_info:
        asyncio.run(_run())
    assert exc_info.value.status_code == 503


def test_graphql_errors_without_data_raise():
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "bad field"}]})

    async def _run():
        async with _client(handler) as api:
            await api.fetch_catalog()

    with pytest.raises(TarkovDevError, match="bad field"):
        asyncio.run(_run())


def test_load_catalog_returns_none_on_failure():
    async def _run():
        async with _client(lambda request: httpx.Response(500)) as api:
            return await api.load_catalog()

    assert asyncio.run(_run()) is None


def test_load_catalog_is_cached(catalog_data):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"data": catalog_data})

    async def _run():
        async with _client(handler) as api:
            first = await api.load_catalog()
            second = await api.load_catalog()
            return first, second

    first, second = asyncio.run(_run())
    assert first is second
    assert len(calls) == 1


def test_json_source_accepts_wrapped_snapshot(tmp_path, catalog_data):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"data": catalog_data}), encoding="utf-8")
    catalog = asyncio.run(JsonCatalogSource(path).load_catalog())
    assert catalog.station("gen").name == "Generator"


def test_json_source_missing_or_broken_file(tmp_path):
    assert asyncio.run(JsonCatalogSource(tmp_path / "missing.json").load_catalog()) is None
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert asyncio.run(JsonCatalogSource(broken).load_catalog()) is None


def test_static_source(catalog):
    assert asyncio.run(StaticCatalogSource(catalog).load_catalog()) is catalog
    assert asyncio.run(StaticCatalogSource(None).load_catalog()) is None
