"""Runtime settings read from EXOATLAS_* environment variables."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from exoatlas.loader import DEFAULT_SHARD_CONCURRENCY
from exoatlas.proximity import SEARCH_RADIUS, THROTTLE_SECONDS


@dataclass(frozen=True)
class Settings:
    catalog_url: str | None  # Base URL serving manifest.json and shard files
    catalog_dir: Path | None  # Local directory with the same layout
    shard_concurrency: int
    fetch_timeout: float  # Seconds per HTTP request
    search_radius: float  # World units
    throttle_seconds: float
    log_level: str


def _positive(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment. Call ``load_dotenv()`` first to honour .env.

    Raises:
        ValueError: A numeric variable is malformed or not positive.
    """
    env = os.environ if environ is None else environ
    catalog_dir = env.get("EXOATLAS_CATALOG_DIR", "").strip()
    return Settings(
        catalog_url=env.get("EXOATLAS_CATALOG_URL", "").strip() or None,
        catalog_dir=Path(catalog_dir) if catalog_dir else None,
        shard_concurrency=int(
            _positive(env, "EXOATLAS_SHARD_CONCURRENCY", DEFAULT_SHARD_CONCURRENCY)
        ),
        fetch_timeout=_positive(env, "EXOATLAS_FETCH_TIMEOUT", 10.0),
        search_radius=_positive(env, "EXOATLAS_SEARCH_RADIUS", SEARCH_RADIUS),
        throttle_seconds=_positive(env, "EXOATLAS_THROTTLE_MS", THROTTLE_SECONDS * 1000) / 1000,
        log_level=env.get("EXOATLAS_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
