"""Data model definitions — explicit boundaries between ingestion, storage, and query layers."""

import enum
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

PARSEC_TO_LIGHT_YEARS = 3.26156


@dataclass(frozen=True)
class RecordKey:
    """Canonical identity of one astronomical object across all tiers."""

    name: str  # Display name ("Kepler-22 b", "Earth")
    host: str  # Host designation ("Kepler-22", "Sun")

    def __str__(self) -> str:
        return f"{self.name} ({self.host})"


@dataclass(frozen=True)
class CanonicalPosition:
    """Reconciled 3D position in world units. The only stored geometry."""

    x: float
    y: float
    z: float

    def distance_to(self, other: "CanonicalPosition") -> float:
        return math.dist((self.x, self.y, self.z), (other.x, other.y, other.z))

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


ORIGIN = CanonicalPosition(0.0, 0.0, 0.0)


@dataclass(frozen=True)
class FrameA:
    """Catalog frame: light-year scaled coordinates from enriched catalog entries."""

    x: float
    y: float
    z: float


@dataclass(frozen=True)
class FrameB:
    """Ephemeris frame: orbital position in astronomical units (solar members only)."""

    x: float
    y: float
    z: float


@dataclass(frozen=True)
class NoFrame:
    """Neither coordinate frame was present on the raw record."""


SourceFrame = FrameA | FrameB | NoFrame


class RejectReason(enum.Enum):
    """Why a raw record could not be turned into a stored record."""

    MISSING_IDENTITY = "missing display name or host designation"
    MISSING_FRAME = "no catalog or ephemeris coordinates"
    NON_FINITE_FRAME = "coordinates are not finite numbers"
    EPHEMERIS_NOT_SOLAR = "ephemeris coordinates on a non solar-system record"
    MALFORMED = "record fields could not be interpreted"


@dataclass(frozen=True)
class Satellites:
    has_satellites: bool
    count: int


@dataclass(frozen=True)
class PhysicalAttributes:
    """Measured quantities as published by the archive. Any may be unknown."""

    radius_earth: float | None  # pl_rade (Earth radii)
    mass_earth: float | None  # pl_bmasse (Earth masses)
    equilibrium_temp_k: float | None  # pl_eqt (Kelvin)
    discovery_year: int | None  # disc_year
    discovery_method: str | None  # discoverymethod
    distance_pc: float | None  # sy_dist (parsecs from the origin)


@dataclass(frozen=True)
class Characteristics:
    """Derived characteristics, computed once at ingestion."""

    habitability_percent: int  # 0-100
    toxicity_percent: int  # 0-100
    atmosphere_type: str
    principal_material: str
    orbit_type: str
    satellites: Satellites


@dataclass(frozen=True)
class Record:
    """One enriched astronomical object. Never mutated after insertion."""

    key: RecordKey
    is_solar: bool
    physical: PhysicalAttributes
    characteristics: Characteristics
    position: CanonicalPosition
    attributes: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def host(self) -> str:
        return self.key.host

    @property
    def distance_light_years(self) -> float | None:
        if self.physical.distance_pc is None:
            return None
        return self.physical.distance_pc * PARSEC_TO_LIGHT_YEARS


@dataclass(frozen=True)
class Tier:
    """A named distance band of the catalog, loaded as a unit."""

    name: str  # "nearby", "medium", "far"
    shard_ids: tuple[str, ...]
    index: int  # Position in the manifest; lower loads first


@dataclass(frozen=True)
class ClusterManifest:
    """Catalog of tiers in increasing-distance order. Fetched once per load."""

    tiers: tuple[Tier, ...]

    @property
    def shard_count(self) -> int:
        return sum(len(t.shard_ids) for t in self.tiers)


@dataclass(frozen=True)
class ProximityResult:
    """Outcome of a nearest-object query. Recomputed, never persisted."""

    record: Record
    distance: float  # World units
    position: CanonicalPosition
    handle: Any | None = None  # Presentation-layer object registered for the record


class LoadPhase(enum.Enum):
    IDLE = "idle"
    MANIFEST_LOADED = "manifest_loaded"
    LOADING_TIER = "loading_tier"
    TIER_LOADED = "tier_loaded"
    ALL_TIERS_LOADED = "all_tiers_loaded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ShardReport:
    """Per-shard ingestion counters."""

    shard_id: str
    received: int = 0
    inserted: int = 0
    duplicates: int = 0
    rejected: int = 0
    failed: bool = False


@dataclass
class TierReport:
    """Outcome of loading one tier. Complete only once every shard is processed."""

    tier: Tier
    shards: list[ShardReport] = field(default_factory=list)
    discarded: bool = False  # Results belonged to a cancelled generation

    @property
    def inserted(self) -> int:
        return sum(s.inserted for s in self.shards)

    @property
    def duplicates(self) -> int:
        return sum(s.duplicates for s in self.shards)

    @property
    def rejected(self) -> int:
        return sum(s.rejected for s in self.shards)

    @property
    def failed_shards(self) -> tuple[str, ...]:
        return tuple(s.shard_id for s in self.shards if s.failed)


@dataclass
class LoadReport:
    """Aggregate of every tier loaded by one loader generation."""

    generation: int
    tiers: list[TierReport] = field(default_factory=list)

    @property
    def inserted(self) -> int:
        return sum(t.inserted for t in self.tiers)

    @property
    def duplicates(self) -> int:
        return sum(t.duplicates for t in self.tiers)

    @property
    def rejected(self) -> int:
        return sum(t.rejected for t in self.tiers)

    @property
    def failed_shards(self) -> tuple[str, ...]:
        return tuple(s for t in self.tiers for s in t.failed_shards)
