import asyncio

import pytest

from exoatlas.dedup import Deduplicator
from exoatlas.errors import ManifestFetchFailure, TierOrderError
from exoatlas.loader import TieredClusterLoader, ingest_records
from exoatlas.models import LoadPhase, RecordKey, ShardReport
from exoatlas.solar import solar_system_records
from exoatlas.store import RecordStore

from conftest import FakeSource, exoplanet


def _loader(source, **kwargs) -> TieredClusterLoader:
    store = RecordStore()
    dedup = Deduplicator(store)
    ingest_records(solar_system_records(), store, dedup, ShardReport(shard_id="solar"))
    return TieredClusterLoader(source, store, dedup, **kwargs)


def _three_tier_source(**kwargs) -> FakeSource:
    manifest = {
        "tiers": [
            {"name": "nearby", "shard_count": 2},
            {"name": "medium", "shard_count": 1},
            {"name": "far", "shard_count": 1},
        ]
    }
    shards = {
        "nearby_0": [exoplanet("N0 b", host="N0")],
        "nearby_1": [exoplanet("N1 b", host="N1")],
        "medium_0": [exoplanet("M0 b", host="M0")],
        "far_0": [exoplanet("F0 b", host="F0")],
    }
    return FakeSource(manifest, shards, **kwargs)


def test_end_to_end_counts(scenario_source) -> None:
    async def scenario():
        loader = _loader(scenario_source)
        near = await loader.load_nearest()
        assert near.inserted == 49
        assert near.duplicates == 1
        assert loader.store.count() == 57
        assert loader.phase is LoadPhase.TIER_LOADED

        report = await loader.load_all_remaining()
        assert loader.phase is LoadPhase.ALL_TIERS_LOADED
        assert loader.store.count() == 86
        assert report.inserted == 78
        assert report.rejected == 1
        assert report.failed_shards == ()

    asyncio.run(scenario())


def test_state_machine_walks_every_phase() -> None:
    async def scenario():
        loader = _loader(_three_tier_source())
        assert loader.phase is LoadPhase.IDLE
        tiers = await loader.load_manifest()
        assert [t.name for t in tiers] == ["nearby", "medium", "far"]
        assert tiers[0].shard_ids == ("nearby_0", "nearby_1")
        assert loader.phase is LoadPhase.MANIFEST_LOADED
        await loader.load_tier(tiers[0])
        assert loader.phase is LoadPhase.TIER_LOADED
        await loader.load_tier(tiers[1])
        await loader.load_tier(tiers[2])
        assert loader.complete
        assert loader.remaining_tiers == ()

    asyncio.run(scenario())


def test_out_of_order_tier_rejected() -> None:
    async def scenario():
        loader = _loader(_three_tier_source())
        with pytest.raises(TierOrderError):
            await loader.load_tier(None)  # manifest not loaded yet
        tiers = await loader.load_manifest()
        with pytest.raises(TierOrderError):
            await loader.load_tier(tiers[1])
        await loader.load_tier(tiers[0])
        with pytest.raises(TierOrderError):
            await loader.load_tier(tiers[0])
        with pytest.raises(TierOrderError):
            await loader.load_tier(tiers[2])

    asyncio.run(scenario())


def test_next_tier_never_starts_before_current_completes() -> None:
    async def scenario():
        source = _three_tier_source()
        gate = asyncio.Event()
        source.gates["nearby_1"] = gate
        loader = _loader(source)
        task = asyncio.create_task(loader.load_all_remaining())
        for _ in range(20):
            await asyncio.sleep(0)

        assert loader.phase is LoadPhase.LOADING_TIER
        assert loader.current_tier.name == "nearby"
        assert sorted(source.fetch_log) == ["nearby_0", "nearby_1"]
        # The ungated shard is already visible while its sibling is pending.
        assert loader.store.count() == 9
        with pytest.raises(TierOrderError):
            await loader.load_tier(loader.manifest.tiers[1])

        gate.set()
        await task
        assert source.fetch_log[2:] == ["medium_0", "far_0"]
        assert loader.store.count() == 12

    asyncio.run(scenario())


def test_shard_failure_is_skipped() -> None:
    async def scenario():
        progress = []
        loader = _loader(
            _three_tier_source(failing=("nearby_1",)),
            on_progress=lambda status, fraction: progress.append((status, fraction)),
        )
        report = await loader.load_all_remaining()
        assert report.failed_shards == ("nearby_1",)
        assert loader.complete
        assert loader.store.count() == 11
        assert progress[-1] == ("All tiers loaded", 1.0)
        assert any(status == "Skipped shard nearby_1" for status, _ in progress)
        fractions = [f for _, f in progress]
        assert fractions == sorted(fractions)

    asyncio.run(scenario())


def test_manifest_failure_is_terminal_until_retried() -> None:
    async def scenario():
        source = _three_tier_source(fail_manifest=True)
        progress = []
        loader = _loader(source, on_progress=lambda s, f: progress.append(s))
        with pytest.raises(ManifestFetchFailure):
            await loader.load_nearest()
        assert loader.phase is LoadPhase.FAILED
        assert isinstance(loader.error, ManifestFetchFailure)
        assert progress[-1].startswith("Catalog unavailable")
        assert source.fetch_log == []

        source.fail_manifest = False
        await loader.load_nearest()
        assert loader.phase is LoadPhase.TIER_LOADED
        assert loader.error is None

    asyncio.run(scenario())


def test_cancelled_generation_discards_late_shards() -> None:
    async def scenario():
        source = _three_tier_source()
        gate = asyncio.Event()
        source.gates["nearby_1"] = gate
        loader = _loader(source)
        task = asyncio.create_task(loader.load_nearest())
        for _ in range(20):
            await asyncio.sleep(0)
        before = loader.store.count()

        loader.cancel()
        gate.set()
        report = await task
        assert report.discarded
        assert loader.store.count() == before
        assert loader.phase is LoadPhase.CANCELLED
        assert loader.report.tiers == []

    asyncio.run(scenario())


def test_concurrency_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _loader(_three_tier_source(), concurrency=0)


def test_unreadable_record_is_rejected_without_aborting_the_tier() -> None:
    async def scenario():
        manifest = {"tiers": [{"name": "near", "shard_count": 1}, {"name": "far", "shard_count": 1}]}
        near = [
            exoplanet("A b", host="A"),
            exoplanet("Huge b", host="Huge", ly=(10**400, 0, 0)),
            exoplanet("Odd b", host="Odd", pl_rade=10**400, pl_eqt=10**400),
            exoplanet("C b", host="C"),
        ]
        loader = _loader(FakeSource(manifest, {"near_0": near, "far_0": [exoplanet("F b", host="F")]}))

        tier = await loader.load_nearest()
        assert tier.inserted == 3
        assert tier.rejected == 1
        assert RecordKey("Huge b", "Huge") not in loader.store
        assert loader.store.get(RecordKey("Odd b", "Odd")).physical.radius_earth is None
        assert loader.phase is LoadPhase.TIER_LOADED

        await loader.load_all_remaining()
        assert loader.phase is LoadPhase.ALL_TIERS_LOADED
        assert RecordKey("F b", "F") in loader.store

    asyncio.run(scenario())


def test_record_that_is_not_a_mapping_is_rejected() -> None:
    async def scenario():
        manifest = {"tiers": [{"name": "near", "shard_count": 1}]}
        loader = _loader(FakeSource(manifest, {"near_0": [["not", "a", "record"], exoplanet("A b", host="A")]}))
        tier = await loader.load_nearest()
        assert tier.inserted == 1
        assert tier.rejected == 1
        assert loader.complete

    asyncio.run(scenario())


class _BrokenShardSource(FakeSource):
    async def fetch_shard(self, tier, shard_id):
        if shard_id == "medium_0":
            raise RuntimeError("decoder crashed")
        return await super().fetch_shard(tier, shard_id)


def test_unexpected_source_error_marks_loader_failed() -> None:
    async def scenario():
        source = _three_tier_source()
        broken = _BrokenShardSource(source.manifest_data, source.shards)
        loader = _loader(broken)
        await loader.load_nearest()
        with pytest.raises(RuntimeError):
            await loader.load_all_remaining()
        assert loader.phase is LoadPhase.FAILED
        assert loader.remaining_tiers[0].name == "medium"

    asyncio.run(scenario())
