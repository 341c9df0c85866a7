"""Error taxonomy for catalog ingestion."""

from exoatlas.models import RejectReason


class CatalogError(Exception):
    """Base class for catalog loading errors."""


class ManifestFetchFailure(CatalogError):
    """The cluster manifest could not be fetched or parsed. Fatal to a load."""


class ShardFetchFailure(CatalogError):
    """One shard payload could not be fetched or parsed. The shard is skipped."""

    def __init__(self, shard_id: str, message: str) -> None:
        super().__init__(f"shard {shard_id}: {message}")
        self.shard_id = shard_id


class RecordReconciliationFailure(CatalogError):
    """A single raw record could not be turned into a stored record."""

    def __init__(self, reason: RejectReason, name: str | None = None) -> None:
        super().__init__(f"{name or '<unnamed>'}: {reason.value}")
        self.reason = reason
        self.name = name


class TierOrderError(CatalogError, ValueError):
    """A tier was requested out of its declared loading order."""
