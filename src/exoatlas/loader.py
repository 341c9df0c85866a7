"""Tiered cluster loading — manifest first, then tiers in increasing-distance order."""

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from exoatlas.dedup import AdmissionOutcome, Deduplicator
from exoatlas.enrich import build_record
from exoatlas.errors import (
    ManifestFetchFailure,
    RecordReconciliationFailure,
    ShardFetchFailure,
    TierOrderError,
)
from exoatlas.models import (
    ClusterManifest,
    LoadPhase,
    LoadReport,
    RejectReason,
    ShardReport,
    Tier,
    TierReport,
)
from exoatlas.sources import CatalogSource
from exoatlas.store import RecordStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]

DEFAULT_SHARD_CONCURRENCY = 4


def ingest_record(
    raw: Mapping[str, Any], store: RecordStore, deduplicator: Deduplicator
) -> AdmissionOutcome | RejectReason:
    """Reconcile, deduplicate and insert one raw record. Never suspends.

    Returns:
        AdmissionOutcome.ADMITTED when stored, the rejecting AdmissionOutcome
        for duplicates, or the RejectReason when reconciliation failed. A record
        whose fields cannot be interpreted at all is rejected as MALFORMED.
    """
    try:
        record = build_record(raw)
    except RecordReconciliationFailure as exc:
        logger.debug("Dropping record: %s", exc)
        return exc.reason
    except Exception:
        logger.warning("Dropping malformed record", exc_info=True)
        return RejectReason.MALFORMED
    outcome = deduplicator.admission(record)
    if outcome is AdmissionOutcome.ADMITTED:
        store.insert(record.key, record)
    return outcome


def ingest_records(
    raws: Iterable[Mapping[str, Any]],
    store: RecordStore,
    deduplicator: Deduplicator,
    report: ShardReport,
) -> ShardReport:
    for raw in raws:
        report.received += 1
        outcome = ingest_record(raw, store, deduplicator)
        if outcome is AdmissionOutcome.ADMITTED:
            report.inserted += 1
        elif isinstance(outcome, AdmissionOutcome):
            report.duplicates += 1
        else:
            report.rejected += 1
    return report


class TieredClusterLoader:
    """Streams one load generation of the catalog into a RecordStore.

    The loader walks ``IDLE → MANIFEST_LOADED → LOADING_TIER → TIER_LOADED →
    … → ALL_TIERS_LOADED``. Shards of one tier are fetched concurrently; a tier
    is marked loaded only after every shard has been processed, and the next
    tier never starts before that. Record admission happens between fetch
    awaits, so readers never observe a half-inserted record.
    """

    def __init__(
        self,
        source: CatalogSource,
        store: RecordStore,
        deduplicator: Deduplicator,
        *,
        generation: int = 0,
        concurrency: int = DEFAULT_SHARD_CONCURRENCY,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.source = source
        self.store = store
        self.deduplicator = deduplicator
        self.generation = generation
        self.on_progress = on_progress
        self.phase = LoadPhase.IDLE
        self.manifest: ClusterManifest | None = None
        self.current_tier: Tier | None = None
        self.error: ManifestFetchFailure | None = None
        self.report = LoadReport(generation=generation)
        self._concurrency = concurrency
        self._next_tier = 0
        self._processed_shards = 0
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def complete(self) -> bool:
        return self.phase is LoadPhase.ALL_TIERS_LOADED

    @property
    def remaining_tiers(self) -> tuple[Tier, ...]:
        if self.manifest is None:
            return ()
        return self.manifest.tiers[self._next_tier :]

    def _progress(self, status: str) -> None:
        if self.on_progress is None or self._cancelled:
            return
        total = self.manifest.shard_count if self.manifest else 0
        fraction = self._processed_shards / total if total else 0.0
        if self.phase is LoadPhase.ALL_TIERS_LOADED:
            fraction = 1.0
        self.on_progress(status, fraction)

    async def load_manifest(self) -> tuple[Tier, ...]:
        """Fetch the cluster manifest. Fatal on failure; may be retried.

        Raises:
            ManifestFetchFailure: The manifest could not be fetched or parsed.
        """
        if self.manifest is not None:
            return self.manifest.tiers
        self._progress("Loading cluster manifest")
        try:
            manifest = await self.source.fetch_manifest()
        except ManifestFetchFailure as exc:
            if not self._cancelled:
                self.phase = LoadPhase.FAILED
                self.error = exc
                logger.error("Catalog manifest unavailable: %s", exc)
                if self.on_progress is not None:
                    self.on_progress(f"Catalog unavailable: {exc}", 0.0)
            raise
        if self._cancelled:
            return ()
        self.manifest = manifest
        self.error = None
        self.phase = LoadPhase.MANIFEST_LOADED
        logger.info(
            "Manifest: %d tiers, %d shards (generation %d)",
            len(manifest.tiers),
            manifest.shard_count,
            self.generation,
        )
        self._progress("Manifest loaded")
        return manifest.tiers

    async def load_tier(self, tier: Tier) -> TierReport:
        """Load every shard of ``tier``. Only the next unloaded tier is accepted.

        Raises:
            TierOrderError: Manifest missing, a tier still loading, or ``tier``
                is not the next tier in declared order.
        """
        if self.manifest is None:
            raise TierOrderError("manifest must be loaded before any tier")
        if self.phase is LoadPhase.LOADING_TIER:
            raise TierOrderError(f"tier {self.current_tier.name!r} is still loading")
        if self._next_tier >= len(self.manifest.tiers):
            raise TierOrderError(f"all tiers already loaded; got {tier.name!r}")
        expected = self.manifest.tiers[self._next_tier]
        if tier != expected:
            raise TierOrderError(f"tier {tier.name!r} requested before {expected.name!r}")

        report = TierReport(tier=tier)
        if self._cancelled:
            report.discarded = True
            return report

        self.phase = LoadPhase.LOADING_TIER
        self.current_tier = tier
        self._progress(f"Loading {tier.name} tier")
        semaphore = asyncio.Semaphore(self._concurrency)
        try:
            report.shards = list(
                await asyncio.gather(
                    *(self._load_shard(tier, shard_id, semaphore) for shard_id in tier.shard_ids)
                )
            )
        except Exception:
            self.phase = LoadPhase.FAILED
            logger.exception("Loading %s tier failed (generation %d)", tier.name, self.generation)
            raise

        if self._cancelled:
            report.discarded = True
            logger.info("Discarded %s tier of stale generation %d", tier.name, self.generation)
            return report

        self._next_tier += 1
        self.report.tiers.append(report)
        if self._next_tier == len(self.manifest.tiers):
            self.phase = LoadPhase.ALL_TIERS_LOADED
        else:
            self.phase = LoadPhase.TIER_LOADED
        logger.info(
            "Tier %s loaded: %d inserted, %d duplicates, %d rejected, %d failed shards",
            tier.name,
            report.inserted,
            report.duplicates,
            report.rejected,
            len(report.failed_shards),
        )
        self._progress(f"Loaded {tier.name} tier")
        return report

    async def _load_shard(
        self, tier: Tier, shard_id: str, semaphore: asyncio.Semaphore
    ) -> ShardReport:
        report = ShardReport(shard_id=shard_id)
        async with semaphore:
            if self._cancelled:
                return report
            try:
                raws = await self.source.fetch_shard(tier, shard_id)
            except ShardFetchFailure as exc:
                if not self._cancelled:
                    logger.warning("Skipping shard %s of %s tier: %s", shard_id, tier.name, exc)
                    report.failed = True
                    self._processed_shards += 1
                    self._progress(f"Skipped shard {shard_id}")
                return report
        if self._cancelled:
            logger.debug("Discarding late shard %s of generation %d", shard_id, self.generation)
            return report
        ingest_records(raws, self.store, self.deduplicator, report)
        self._processed_shards += 1
        self._progress(f"Loaded shard {shard_id}")
        return report

    async def load_nearest(self) -> TierReport:
        """Load the manifest if needed, then the nearest tier."""
        tiers = await self.load_manifest()
        if not tiers:
            return TierReport(tier=Tier(name="", shard_ids=(), index=0), discarded=True)
        if self._next_tier > 0:
            return self.report.tiers[0]
        return await self.load_tier(tiers[0])

    async def load_all_remaining(self) -> LoadReport:
        """Load every tier not yet loaded, strictly in declared order."""
        await self.load_manifest()
        for tier in self.remaining_tiers:
            if self._cancelled:
                break
            await self.load_tier(tier)
        if self.phase is LoadPhase.ALL_TIERS_LOADED:
            logger.info(
                "All tiers loaded: %d records in store (generation %d)",
                self.store.count(),
                self.generation,
            )
            self._progress("All tiers loaded")
        return self.report

    def cancel(self) -> None:
        """Mark this generation stale. Late shard results are discarded."""
        self._cancelled = True
        self.phase = LoadPhase.CANCELLED
