"""Catalog session — owns one store generation, its loader, and the proximity index."""

import asyncio
import contextlib
import logging
from collections.abc import Callable

from exoatlas.config import Settings
from exoatlas.dedup import Deduplicator
from exoatlas.loader import (
    DEFAULT_SHARD_CONCURRENCY,
    ProgressCallback,
    TieredClusterLoader,
    ingest_records,
)
from exoatlas.models import LoadReport, ProximityResult, ShardReport, TierReport
from exoatlas.proximity import SEARCH_RADIUS, THROTTLE_SECONDS, Point, ProximityIndex
from exoatlas.solar import solar_system_records
from exoatlas.sources import CatalogSource, DirectoryCatalogSource, HttpCatalogSource
from exoatlas.store import RecordStore

logger = logging.getLogger(__name__)


class CatalogSession:
    """Lifecycle of the catalog core.

    A session is created at startup, seeded with the solar system, and loads
    the nearest tier before it is queryable; remaining tiers stream in the
    background. ``reload()`` throws the whole store away and starts a new
    generation; results arriving late for the old generation are discarded.
    """

    def __init__(
        self,
        source: CatalogSource,
        *,
        concurrency: int = DEFAULT_SHARD_CONCURRENCY,
        search_radius: float = SEARCH_RADIUS,
        throttle_seconds: float = THROTTLE_SECONDS,
        clock: Callable[[], float] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.source = source
        self.concurrency = concurrency
        self.on_progress = on_progress
        self.generation = 0
        self._background: asyncio.Task[LoadReport] | None = None
        self.background_error: BaseException | None = None
        self.store = RecordStore()
        index_kwargs = {"search_radius": search_radius, "throttle_seconds": throttle_seconds}
        if clock is not None:
            index_kwargs["clock"] = clock
        self.index = ProximityIndex(self.store, **index_kwargs)
        self._new_generation(self.store)

    @classmethod
    def from_settings(
        cls, settings: Settings, on_progress: ProgressCallback | None = None
    ) -> "CatalogSession":
        source: CatalogSource
        if settings.catalog_url:
            source = HttpCatalogSource(settings.catalog_url, timeout=settings.fetch_timeout)
        elif settings.catalog_dir is not None:
            source = DirectoryCatalogSource(settings.catalog_dir)
        else:
            raise ValueError("set EXOATLAS_CATALOG_URL or EXOATLAS_CATALOG_DIR")
        return cls(
            source,
            concurrency=settings.shard_concurrency,
            search_radius=settings.search_radius,
            throttle_seconds=settings.throttle_seconds,
            on_progress=on_progress,
        )

    def _new_generation(self, store: RecordStore) -> None:
        self.store = store
        self.background_error = None
        self.deduplicator = Deduplicator(store)
        self.seed_report = ingest_records(
            solar_system_records(), store, self.deduplicator, ShardReport(shard_id="solar")
        )
        self.loader = TieredClusterLoader(
            self.source,
            store,
            self.deduplicator,
            generation=self.generation,
            concurrency=self.concurrency,
            on_progress=self.on_progress,
        )
        self.index.rebind(store)
        logger.info(
            "Generation %d seeded with %d solar-system records",
            self.generation,
            self.seed_report.inserted,
        )

    async def start(self) -> TierReport:
        """Load the manifest and nearest tier, then stream the rest in the background.

        Raises:
            ManifestFetchFailure: The catalog cannot be loaded at all. Call
                ``start()`` again to retry.
        """
        report = await self.loader.load_nearest()
        if self._background is None and not self.loader.complete:
            self._background = asyncio.create_task(
                self.loader.load_all_remaining(),
                name=f"exoatlas-load-{self.generation}",
            )
            self._background.add_done_callback(self._on_background_done)
        return report

    def _on_background_done(self, task: asyncio.Task[LoadReport]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and task is self._background:
            self.background_error = exc
            logger.error(
                "Background tier loading failed (generation %d)",
                self.generation,
                exc_info=exc,
            )

    async def wait_until_loaded(self) -> LoadReport:
        """Wait for the background tiers of the current generation."""
        if self._background is None:
            return self.loader.report
        return await self._background

    async def _cancel_background(self) -> None:
        self.loader.cancel()
        task, self._background = self._background, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def reload(self) -> TierReport:
        """Discard the store and load a fresh generation from the source."""
        await self._cancel_background()
        self.generation += 1
        self._new_generation(RecordStore())
        return await self.start()

    async def close(self) -> None:
        await self._cancel_background()
        await self.source.aclose()

    async def __aenter__(self) -> "CatalogSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def nearest(self, point: Point, radius: float | None = None) -> ProximityResult | None:
        return self.index.nearest(point, radius)
