"""Record store — the authoritative mapping from canonical identity to record."""

import logging
from collections.abc import Iterator
from typing import Any

from exoatlas.models import Record, RecordKey

logger = logging.getLogger(__name__)


class RecordStore:
    """Append-only mapping of RecordKey to Record.

    One loader writes; the query engine and presentation layer read. Records
    are never replaced or removed: a reload builds a new store instead.
    """

    def __init__(self) -> None:
        self._by_key: dict[RecordKey, Record] = {}
        self._ordered: list[Record] = []
        self._handles: dict[RecordKey, Any] = {}
        self._solar_names: set[str] = set()  # casefolded

    def insert(self, key: RecordKey, record: Record) -> bool:
        """Insert a record. A second insert for an existing key is ignored.

        Returns:
            True if the record was stored, False if the key already existed.
        """
        if key in self._by_key:
            logger.debug("Ignoring second insert for %s", key)
            return False
        self._by_key[key] = record
        self._ordered.append(record)
        if record.is_solar:
            self._solar_names.add(record.name.casefold())
        return True

    def get(self, key: RecordKey) -> Record | None:
        return self._by_key.get(key)

    def all(self) -> tuple[Record, ...]:
        return tuple(self._ordered)

    def count(self) -> int:
        return len(self._ordered)

    def records_since(self, offset: int) -> list[Record]:
        """Records inserted after the first ``offset``, in insertion order."""
        return self._ordered[offset:]

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[Record]:
        return iter(self.all())

    def get_by_name(self, name: str) -> Record | None:
        """First record whose display name matches exactly."""
        for record in self._ordered:
            if record.name == name:
                return record
        return None

    def solar_records(self) -> tuple[Record, ...]:
        return tuple(r for r in self._ordered if r.is_solar)

    def has_solar_name(self, name: str) -> bool:
        """True when a stored solar-system record carries ``name``, ignoring case."""
        return name.casefold() in self._solar_names

    def filter(
        self,
        name: str = "",
        min_habitability: int = 0,
        max_distance_ly: float | None = None,
    ) -> tuple[Record, ...]:
        """Navigator-style filtering over the current contents.

        Args:
            name: Case-insensitive substring of the display name. Empty matches all.
            min_habitability: Minimum habitability percent, inclusive.
            max_distance_ly: Maximum distance from the origin in light-years.
                Records with unknown distance are excluded when set.
        """
        needle = name.strip().casefold()
        matches = []
        for record in self._ordered:
            if needle and needle not in record.name.casefold():
                continue
            if record.characteristics.habitability_percent < min_habitability:
                continue
            if max_distance_ly is not None:
                distance = record.distance_light_years
                if distance is None or distance > max_distance_ly:
                    continue
            matches.append(record)
        return tuple(matches)

    def filter_by_habitability(self, minimum: int) -> tuple[Record, ...]:
        return self.filter(min_habitability=minimum)

    def register_handle(self, key: RecordKey, handle: Any) -> None:
        """Associate a presentation object with a stored record, once, at creation time."""
        if key not in self._by_key:
            raise KeyError(f"No record for {key}")
        self._handles[key] = handle

    def handle(self, key: RecordKey) -> Any | None:
        return self._handles.get(key)
