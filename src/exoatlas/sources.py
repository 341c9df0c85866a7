"""Catalog sources — fetch the cluster manifest and shard payloads over HTTP or from disk."""

import asyncio
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import httpx

from exoatlas.errors import ManifestFetchFailure, ShardFetchFailure
from exoatlas.models import ClusterManifest, Tier

MANIFEST_NAME = "manifest.json"


class CatalogSource(Protocol):
    async def fetch_manifest(self) -> ClusterManifest: ...

    async def fetch_shard(self, tier: Tier, shard_id: str) -> list[Mapping[str, Any]]: ...

    async def aclose(self) -> None: ...


def parse_manifest(data: Any) -> ClusterManifest:
    """Validate a decoded manifest document.

    Accepts ``{"tiers": [...]}`` or a bare list of tier entries. Each entry
    names its tier (``name``/``tierName``) and either lists its shards
    (``shards``/``shardIds``) or gives a count (``shard_count``/``shardCount``),
    in which case ids ``<tier>_<i>`` are generated.

    Raises:
        ManifestFetchFailure: On any structural problem.
    """
    entries = data.get("tiers") if isinstance(data, Mapping) else data
    if not isinstance(entries, list) or not entries:
        raise ManifestFetchFailure("manifest has no tier list")

    tiers: list[Tier] = []
    seen: set[str] = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ManifestFetchFailure(f"tier entry {index} is not an object")
        name = entry.get("name") or entry.get("tierName")
        if not isinstance(name, str) or not name:
            raise ManifestFetchFailure(f"tier entry {index} has no name")
        if name in seen:
            raise ManifestFetchFailure(f"tier {name!r} declared twice")
        seen.add(name)

        shards = entry.get("shards", entry.get("shardIds"))
        if shards is None:
            count = entry.get("shard_count", entry.get("shardCount"))
            if not isinstance(count, int) or count < 0:
                raise ManifestFetchFailure(f"tier {name!r} has no shard list or count")
            shards = [f"{name}_{i}" for i in range(count)]
        if not isinstance(shards, list) or not all(isinstance(s, str) for s in shards):
            raise ManifestFetchFailure(f"tier {name!r} shard list is malformed")
        tiers.append(Tier(name=name, shard_ids=tuple(shards), index=index))
    return ClusterManifest(tiers=tuple(tiers))


def parse_shard(shard_id: str, data: Any) -> list[Mapping[str, Any]]:
    """Extract raw records from a decoded shard payload.

    Raises:
        ShardFetchFailure: When the payload holds no record list.
    """
    if isinstance(data, Mapping):
        data = data.get("planets", data.get("records"))
    if not isinstance(data, list):
        raise ShardFetchFailure(shard_id, "payload is not a record list")
    return [r for r in data if isinstance(r, Mapping)]


class HttpCatalogSource:
    """Catalog served as static JSON files under a base URL."""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _get_json(self, name: str) -> Any:
        resp = await self._client.get(f"{self.base_url}/{name}")
        resp.raise_for_status()
        return resp.json()

    async def fetch_manifest(self) -> ClusterManifest:
        try:
            data = await self._get_json(MANIFEST_NAME)
        except (httpx.HTTPError, ValueError) as exc:
            raise ManifestFetchFailure(f"manifest fetch failed: {exc}") from exc
        return parse_manifest(data)

    async def fetch_shard(self, tier: Tier, shard_id: str) -> list[Mapping[str, Any]]:
        try:
            data = await self._get_json(f"{shard_id}.json")
        except (httpx.HTTPError, ValueError) as exc:
            raise ShardFetchFailure(shard_id, str(exc)) from exc
        return parse_shard(shard_id, data)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class DirectoryCatalogSource:
    """Same layout as HttpCatalogSource, read from a local directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    async def _read_json(self, name: str) -> Any:
        text = await asyncio.to_thread((self.root / name).read_text, encoding="utf-8")
        return json.loads(text)

    async def fetch_manifest(self) -> ClusterManifest:
        try:
            data = await self._read_json(MANIFEST_NAME)
        except (OSError, ValueError) as exc:
            raise ManifestFetchFailure(f"manifest read failed: {exc}") from exc
        return parse_manifest(data)

    async def fetch_shard(self, tier: Tier, shard_id: str) -> list[Mapping[str, Any]]:
        try:
            data = await self._read_json(f"{shard_id}.json")
        except (OSError, ValueError) as exc:
            raise ShardFetchFailure(shard_id, str(exc)) from exc
        return parse_shard(shard_id, data)

    async def aclose(self) -> None:
        return None
