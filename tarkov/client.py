"""Catalog sources: async tarkov.dev GraphQL client and JSON snapshots."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Protocol

import httpx

from .models import Catalog

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.tarkov.dev/graphql"

_CATALOG_QUERY = """
query TrackerCatalog($lang: LanguageCode, $gameMode: GameMode) {
  hideoutStations(lang: $lang, gameMode: $gameMode) {
    id
    name
    normalizedName
    levels {
      id
      level
      constructionTime
      stationLevelRequirements { id station { id name } level }
      itemRequirements { id item { id name } count quantity }
    }
  }
  tasks(lang: $lang, gameMode: $gameMode) {
    id
    name
    trader { name }
    minPlayerLevel
    factionName
    taskRequirements { task { id } status }
    failConditions {
      id
      type
      ... on TaskObjectiveTaskStatus { task { id } status }
    }
    objectives {
      id
      type
      description
      optional
      ... on TaskObjectiveItem { count }
      ... on TaskObjectiveShoot { count }
    }
  }
}
"""


class CatalogSource(Protocol):
    async def load_catalog(self) -> Catalog | None: ...


class TarkovDevError(Exception):
    """Raised when the tarkov.dev API returns an error."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class TarkovDevClient:
    """Async wrapper for the tarkov.dev GraphQL API.

    Usage::

        async with TarkovDevClient() as api:
            catalog = await api.load_catalog()
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        language: str = "en",
        game_mode: str = "regular",
        cache_ttl: float = 3600.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_url = api_url
        self._language = language
        self._game_mode = game_mode
        self._cache_ttl = cache_ttl
        self._cached: Catalog | None = None
        self._cached_at = 0.0
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> TarkovDevClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # ── Request helpers ─────────────────────────────────────────

    async def _query(self, query: str, variables: dict[str, Any] | None = None) -> dict:
        """Run a GraphQL query and return its ``data`` object."""
        resp = await self._client.post(
            self._api_url,
            json={"query": query, "variables": variables or {}},
        )
        if resp.status_code >= 400:
            raise TarkovDevError(f"HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            body = resp.json()
        except ValueError as exc:
            raise TarkovDevError("Response is not JSON", status_code=resp.status_code) from exc
        if not isinstance(body, dict):
            raise TarkovDevError("Unexpected response shape", status_code=resp.status_code)

        errors = body.get("errors") or []
        data = body.get("data")
        if errors and not data:
            message = "; ".join(str(e.get("message", e)) for e in errors if isinstance(e, dict))
            raise TarkovDevError(message or "GraphQL error")
        if errors:
            # Partial data still beats no data.
            logger.warning("tarkov.dev returned %d partial errors", len(errors))
        return data or {}

    # ── Catalog ─────────────────────────────────────────────────

    async def fetch_catalog(self) -> Catalog:
        data = await self._query(
            _CATALOG_QUERY,
            {"lang": self._language, "gameMode": self._game_mode},
        )
        if not data.get("hideoutStations") or not data.get("tasks"):
            raise TarkovDevError("Catalog response is missing stations or tasks")
        catalog = Catalog.from_api(data)
        logger.info(
            "Loaded catalog %s: %d stations, %d tasks",
            catalog.version,
            len(catalog.stations),
            len(catalog.tasks),
        )
        return catalog

    async def load_catalog(self) -> Catalog | None:
        """Fetch the catalog (cached for ``cache_ttl`` seconds); ``None`` signals it is unavailable."""
        if self._cached is not None and time.monotonic() - self._cached_at < self._cache_ttl:
            return self._cached
        try:
            catalog = await self.fetch_catalog()
        except (TarkovDevError, httpx.HTTPError) as exc:
            logger.error("Failed to load tarkov.dev catalog: %s", exc)
            return None
        self._cached = catalog
        self._cached_at = time.monotonic()
        return catalog


class JsonCatalogSource:
    """Catalog snapshot stored as a JSON file in the tarkov.dev response shape."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    async def load_catalog(self) -> Catalog | None:
        if not self._path.exists():
            logger.error("Catalog snapshot not found at %s", self._path)
            return None
        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
            data = json.loads(raw)
        except (OSError, ValueError) as exc:
            logger.error("Failed to read catalog snapshot %s: %s", self._path, exc)
            return None
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        if not isinstance(data, dict):
            logger.error("Catalog snapshot %s is not an object", self._path)
            return None
        return Catalog.from_api(data)


class StaticCatalogSource:
    """Serve an already-built catalog (or ``None``)."""

    def __init__(self, catalog: Catalog | None):
        self._catalog = catalog

    async def load_catalog(self) -> Catalog | None:
        return self._catalog
