"""Proximity query engine — nearest stored record to a point, throttled per tick."""

import logging
import time
from collections.abc import Callable, Sequence

import numpy as np

from exoatlas.models import CanonicalPosition, ProximityResult, Record
from exoatlas.store import RecordStore

logger = logging.getLogger(__name__)

SEARCH_RADIUS = 5_000_000.0  # World units (50 light-years)
THROTTLE_SECONDS = 0.5

Point = CanonicalPosition | Sequence[float]


def _coords(point: Point) -> np.ndarray:
    if isinstance(point, CanonicalPosition):
        return np.array(point.as_tuple(), dtype=float)
    coords = np.asarray(point, dtype=float)
    if coords.shape != (3,):
        raise ValueError(f"query point must have 3 components, got shape {coords.shape}")
    return coords


def has_changed(previous: ProximityResult | None, current: ProximityResult | None) -> bool:
    """True when the nearest object's identity differs. Distance changes are ignored."""
    if previous is None and current is None:
        return False
    if previous is None or current is None:
        return True
    return previous.record.key != current.record.key


class ProximityIndex:
    """Linear nearest-neighbour scan over an incrementally synced position buffer.

    The store is append-only, so the buffer only ever grows by the records
    inserted since the previous scan. Calls arriving within the throttle
    interval of the last scan return the cached result, whatever the point.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        search_radius: float = SEARCH_RADIUS,
        throttle_seconds: float = THROTTLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.search_radius = search_radius
        self.throttle_seconds = throttle_seconds
        self._clock = clock
        self.last_result: ProximityResult | None = None
        self._last_scan: float | None = None
        self._bind(store)

    def _bind(self, store: RecordStore) -> None:
        self._store = store
        self._positions = np.empty((0, 3), dtype=float)
        self._records: list[Record] = []

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def size(self) -> int:
        return len(self._records)

    def _sync(self) -> None:
        fresh = self._store.records_since(len(self._records))
        if not fresh:
            return
        start = len(self._records)
        needed = start + len(fresh)
        if needed > len(self._positions):
            capacity = max(needed, 2 * len(self._positions), 64)
            grown = np.empty((capacity, 3), dtype=float)
            grown[:start] = self._positions[:start]
            self._positions = grown
        self._positions[start:needed] = [r.position.as_tuple() for r in fresh]
        self._records.extend(fresh)

    def nearest(self, point: Point, radius: float | None = None) -> ProximityResult | None:
        """Nearest record strictly within ``radius`` of ``point``.

        Args:
            point: Query position in world units.
            radius: Hard cutoff in world units. Defaults to the index's search radius.

        Returns:
            ProximityResult, or None for an empty store or nothing in range.
            Within the throttle interval the previous result is returned unchanged.
        """
        now = self._clock()
        if self._last_scan is not None and now - self._last_scan < self.throttle_seconds:
            return self.last_result
        self._last_scan = now
        self.last_result = self._scan(point, self.search_radius if radius is None else radius)
        return self.last_result

    def _scan(self, point: Point, radius: float) -> ProximityResult | None:
        self._sync()
        if not self._records:
            return None
        query = _coords(point)
        distances = np.linalg.norm(self._positions[: len(self._records)] - query, axis=1)
        # argmin returns the first minimum, so ties resolve to store order
        index = int(np.argmin(distances))
        distance = float(distances[index])
        if not distance < radius:
            return None
        record = self._records[index]
        logger.debug("Nearest: %s at %.2f world units", record.key, distance)
        return ProximityResult(
            record=record,
            distance=distance,
            position=record.position,
            handle=self._store.handle(record.key),
        )

    def has_changed(
        self, previous: ProximityResult | None, current: ProximityResult | None
    ) -> bool:
        return has_changed(previous, current)

    def reset(self) -> None:
        """Forget the cached result and throttle window."""
        self.last_result = None
        self._last_scan = None

    def rebind(self, store: RecordStore) -> None:
        """Point the index at a rebuilt store."""
        self._bind(store)
        self.reset()
