"""Identity-based deduplication applied synchronously before store insertion."""

import enum
import logging
from collections import Counter
from collections.abc import Mapping
from typing import Any

from exoatlas.enrich import record_key
from exoatlas.models import Record, RecordKey
from exoatlas.reconcile import is_solar_member
from exoatlas.store import RecordStore

logger = logging.getLogger(__name__)


class AdmissionOutcome(enum.Enum):
    ADMITTED = "admitted"
    DUPLICATE = "duplicate"  # Key already stored
    SOLAR_SEED_PRECEDENCE = "solar_seed_precedence"  # Seeded solar record is authoritative
    NO_IDENTITY = "no_identity"


class Deduplicator:
    """Gate in front of a RecordStore. Earliest insertion wins.

    Solar-system members are seeded before any catalog tier, so a catalog
    copy of a solar planet always loses to the seed, even under a different
    host designation or with different attributes.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self.counts: Counter[AdmissionOutcome] = Counter()

    def check(self, candidate: Record | Mapping[str, Any]) -> AdmissionOutcome:
        """Classify a candidate without recording the outcome."""
        if isinstance(candidate, Record):
            key: RecordKey | None = candidate.key
            solar = candidate.is_solar
        else:
            key = record_key(candidate)
            solar = is_solar_member(candidate)

        if key is None:
            return AdmissionOutcome.NO_IDENTITY
        if key in self._store:
            return AdmissionOutcome.DUPLICATE
        if solar and self._seeded_solar_name(key.name):
            return AdmissionOutcome.SOLAR_SEED_PRECEDENCE
        return AdmissionOutcome.ADMITTED

    def admission(self, candidate: Record | Mapping[str, Any]) -> AdmissionOutcome:
        """Classify a candidate and count the outcome."""
        outcome = self.check(candidate)
        self.counts[outcome] += 1
        if outcome is not AdmissionOutcome.ADMITTED:
            logger.debug("Rejected %s: %s", _label(candidate), outcome.value)
        return outcome

    def admit(self, candidate: Record | Mapping[str, Any]) -> bool:
        """True when the candidate may proceed to store insertion."""
        return self.admission(candidate) is AdmissionOutcome.ADMITTED

    def _seeded_solar_name(self, name: str) -> bool:
        return self._store.has_solar_name(name)


def _label(candidate: Record | Mapping[str, Any]) -> str:
    if isinstance(candidate, Record):
        return str(candidate.key)
    return str(record_key(candidate) or "<unnamed>")
