"""Coordinate reconciliation — collapse catalog and ephemeris frames into one world frame."""

import math
from collections.abc import Mapping
from typing import Any

from exoatlas.models import (
    CanonicalPosition,
    FrameA,
    FrameB,
    NoFrame,
    RejectReason,
    SourceFrame,
)

# World units per source unit. Both frames share the same scene scale so that
# distances between a solar-system member and a cataloged exoplanet compare.
GLOBAL_SCALE = 10_000.0
LIGHT_YEAR_SCALE = 10.0 * GLOBAL_SCALE
AU_SCALE = 10.0 * GLOBAL_SCALE

SOLAR_HOST = "Sun"

_FRAME_A_AXES = ("x_light_years", "y_light_years", "z_light_years")
_PLAIN_AXES = ("x", "y", "z")
_TRUE_SPELLINGS = frozenset({"1", "true", "yes", "on"})


def first_present(raw: Mapping[str, Any], *names: str) -> Any:
    """Return the value of the first key in ``names`` that is present and not None."""
    for name in names:
        value = raw.get(name)
        if value is not None:
            return value
    return None


def is_solar_member(raw: Mapping[str, Any]) -> bool:
    """Solar-system flag. A host of "Sun" implies membership."""
    flag = first_present(raw, "isSolar", "isSolarMember", "is_solar")
    if isinstance(flag, str):
        return flag.strip().lower() in _TRUE_SPELLINGS
    if flag is not None:
        return bool(flag)
    host = first_present(raw, "hostname", "hostDesignation")
    return isinstance(host, str) and host.strip() == SOLAR_HOST


def _triple(obj: Any, axes: tuple[str, ...]) -> tuple[Any, Any, Any] | None:
    if not isinstance(obj, Mapping):
        return None
    values = tuple(obj.get(axis) for axis in axes)
    if all(v is None for v in values):
        return None
    return values  # type: ignore[return-value]


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return math.nan


def parse_frame(raw: Mapping[str, Any]) -> SourceFrame:
    """Identify which source coordinate frame a raw record carries.

    Frame A wins whenever it is present at all; finiteness is checked by
    :func:`reconcile`, which may still fall back to Frame B for solar members.
    """
    frame_a = _frame_a(raw)
    if frame_a is not None:
        return frame_a
    frame_b = _frame_b(raw)
    if frame_b is not None:
        return frame_b
    return NoFrame()


def _frame_a(raw: Mapping[str, Any]) -> FrameA | None:
    characteristics = raw.get("characteristics")
    candidates: list[tuple[Any, tuple[str, ...]]] = []
    if isinstance(characteristics, Mapping):
        candidates.append((characteristics.get("coordinates_3d"), _FRAME_A_AXES))
    candidates.append((raw.get("coordinates_3d"), _FRAME_A_AXES))
    candidates.append((raw.get("frameA"), _PLAIN_AXES))
    for obj, axes in candidates:
        values = _triple(obj, axes)
        if values is not None:
            return FrameA(*(_as_float(v) for v in values))
    return None


def _frame_b(raw: Mapping[str, Any]) -> FrameB | None:
    for key in ("position", "frameB"):
        values = _triple(raw.get(key), _PLAIN_AXES)
        if values is not None:
            return FrameB(*(_as_float(v) for v in values))
    return None


def _is_finite(frame: FrameA | FrameB) -> bool:
    return all(math.isfinite(v) for v in (frame.x, frame.y, frame.z))


def to_canonical(frame: FrameA | FrameB) -> CanonicalPosition:
    """Scale a source-frame triple into world units."""
    scale = LIGHT_YEAR_SCALE if isinstance(frame, FrameA) else AU_SCALE
    return CanonicalPosition(frame.x * scale, frame.y * scale, frame.z * scale)


def reconcile(raw: Mapping[str, Any]) -> CanonicalPosition | RejectReason:
    """Resolve a raw record to its canonical position, or the reason it has none.

    Policy:
        1. Frame A present with three finite components → use it.
        2. Otherwise, a solar-system member with finite Frame B → use Frame B.
        3. Otherwise reject. There is no origin fallback.

    Args:
        raw: Raw record mapping as decoded from a shard payload.

    Returns:
        CanonicalPosition in world units, or a RejectReason.
    """
    frame_a = _frame_a(raw)
    if frame_a is not None and _is_finite(frame_a):
        return to_canonical(frame_a)

    frame_b = _frame_b(raw)
    if frame_b is not None:
        if not is_solar_member(raw):
            return RejectReason.EPHEMERIS_NOT_SOLAR
        if _is_finite(frame_b):
            return to_canonical(frame_b)
        return RejectReason.NON_FINITE_FRAME

    if frame_a is not None:
        return RejectReason.NON_FINITE_FRAME
    return RejectReason.MISSING_FRAME
