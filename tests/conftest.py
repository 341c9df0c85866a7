import asyncio
from typing import Any

import pytest

from exoatlas.errors import ManifestFetchFailure, ShardFetchFailure
from exoatlas.sources import parse_manifest


def exoplanet(
    name: str,
    host: str = "HD 1",
    ly: tuple[float, float, float] = (1.0, 0.0, 0.0),
    **extra: Any,
) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "pl_name": name,
        "hostname": host,
        "pl_rade": 1.2,
        "pl_bmasse": 1.5,
        "pl_eqt": 260,
        "disc_year": 2014,
        "discoverymethod": "Transit",
        "sy_dist": 12.0,
        "characteristics": {
            "coordinates_3d": {
                "x_light_years": ly[0],
                "y_light_years": ly[1],
                "z_light_years": ly[2],
            },
        },
    }
    raw.update(extra)
    return raw


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource:
    """In-memory catalog source. Shards can be made to fail or to wait on a gate."""

    def __init__(
        self,
        manifest: Any,
        shards: dict[str, Any],
        *,
        fail_manifest: bool = False,
        failing: tuple[str, ...] = (),
    ) -> None:
        self.manifest_data = manifest
        self.shards = shards
        self.fail_manifest = fail_manifest
        self.failing = set(failing)
        self.gates: dict[str, asyncio.Event] = {}
        self.fetch_log: list[str] = []
        self.closed = False

    async def fetch_manifest(self):
        await asyncio.sleep(0)
        if self.fail_manifest:
            raise ManifestFetchFailure("manifest unreachable")
        return parse_manifest(self.manifest_data)

    async def fetch_shard(self, tier, shard_id):
        self.fetch_log.append(shard_id)
        gate = self.gates.get(shard_id)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        if shard_id in self.failing:
            raise ShardFetchFailure(shard_id, "connection reset")
        return list(self.shards[shard_id])

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scenario_source() -> FakeSource:
    """Two near shards (50 records, one solar duplicate) and one far shard
    (30 records, one without coordinates)."""
    near_0 = [exoplanet(f"Near-{i} b", host=f"Near-{i}", ly=(2.0 + i, 1.0, 0.0)) for i in range(25)]
    near_1 = [exoplanet(f"Near-{i} b", host=f"Near-{i}", ly=(2.0 + i, 1.0, 0.0)) for i in range(25, 49)]
    near_1.append(
        exoplanet("Earth", host="Sun", ly=(0.0, 0.0, 0.0), isSolar=True, pl_eqt=999)
    )
    far = [exoplanet(f"Far-{i} b", host=f"Far-{i}", ly=(300.0 + i, 0.0, 5.0)) for i in range(28)]
    # Closest thing to the origin in the whole catalog, but only in the far tier.
    far.append(exoplanet("Proxima d", host="Proxima Centauri", ly=(0.0001, 0.0, 0.0)))
    lost = exoplanet("Lost b", host="Lost")
    del lost["characteristics"]["coordinates_3d"]
    far.append(lost)
    manifest = {
        "tiers": [
            {"name": "near", "shards": ["near_0", "near_1"]},
            {"name": "far", "shards": ["far_0"]},
        ]
    }
    return FakeSource(manifest, {"near_0": near_0, "near_1": near_1, "far_0": far})
