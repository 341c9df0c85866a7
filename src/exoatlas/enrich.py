"""Record building — identity, physical attributes, and characteristics derived once at ingestion."""

import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from exoatlas.errors import RecordReconciliationFailure
from exoatlas.models import (
    CanonicalPosition,
    Characteristics,
    PhysicalAttributes,
    Record,
    RecordKey,
    RejectReason,
    Satellites,
)
from exoatlas.reconcile import first_present, is_solar_member, reconcile

_FRAME_FIELDS = frozenset({"position", "frameA", "frameB", "coordinates_3d"})

# Earth's equilibrium temperature; the centre of the temperate band.
_TEMPERATE_K = 255.0


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _integer(value: Any) -> int | None:
    number = _number(value)
    return None if number is None else int(number)


def _percent(value: Any) -> int | None:
    number = _number(value)
    if number is None:
        return None
    return max(0, min(100, round(number)))


def record_key(raw: Mapping[str, Any]) -> RecordKey | None:
    """Canonical identity of a raw record, or None when either half is missing."""
    name = _text(first_present(raw, "pl_name", "displayName", "name"))
    host = _text(first_present(raw, "hostname", "hostDesignation", "host"))
    if name is None or host is None:
        return None
    return RecordKey(name=name, host=host)


def physical_attributes(raw: Mapping[str, Any]) -> PhysicalAttributes:
    return PhysicalAttributes(
        radius_earth=_number(first_present(raw, "pl_rade", "radius")),
        mass_earth=_number(first_present(raw, "pl_bmasse", "mass")),
        equilibrium_temp_k=_number(first_present(raw, "pl_eqt", "equilibriumTemperature")),
        discovery_year=_integer(first_present(raw, "disc_year", "discoveryYear")),
        discovery_method=_text(first_present(raw, "discoverymethod", "discoveryMethod")),
        distance_pc=_number(first_present(raw, "sy_dist", "distance")),
    )


def _estimate_habitability(physical: PhysicalAttributes) -> int:
    """Temperature closeness to the temperate band times a rocky-size factor."""
    temp, radius = physical.equilibrium_temp_k, physical.radius_earth
    if temp is None or radius is None or radius <= 0:
        return 0
    temp_score = max(0.0, 1.0 - abs(temp - _TEMPERATE_K) / 150.0)
    if 0.5 <= radius <= 1.6:
        size_score = 1.0
    elif radius < 0.5:
        size_score = radius / 0.5
    else:
        size_score = max(0.0, 1.0 - (radius - 1.6) / 2.4)
    return max(0, min(100, round(100 * temp_score * size_score)))


def _estimate_toxicity(physical: PhysicalAttributes) -> int:
    temp, radius = physical.equilibrium_temp_k, physical.radius_earth
    score = 30.0
    if temp is not None:
        score += min(60.0, abs(temp - _TEMPERATE_K) / 10.0)
    if radius is not None and radius >= 2.0:
        score += 20.0
    return max(0, min(100, round(score)))


def _estimate_atmosphere(physical: PhysicalAttributes) -> str:
    temp, radius = physical.equilibrium_temp_k, physical.radius_earth
    if radius is None or radius <= 0:
        return "Unknown"
    if radius >= 6.0:
        return "Hydrogen-Helium"
    if radius >= 2.0:
        return "Hydrogen-rich envelope"
    if radius < 0.5:
        return "Trace"
    if temp is not None and temp > 500:
        return "Thick CO2"
    if temp is not None and 180 <= temp <= 320:
        return "Nitrogen-Oxygen"
    return "Thin CO2"


def _estimate_material(physical: PhysicalAttributes) -> str:
    radius, mass = physical.radius_earth, physical.mass_earth
    if radius is None or radius <= 0:
        return "Unknown"
    if radius >= 6.0:
        return "Gas"
    volume = radius**3  # underflows to 0.0 for vanishing radii
    if mass is not None and volume > 0:
        density = mass / volume  # Earth densities
        if density >= 0.7:
            return "Rock and iron"
        if density >= 0.3:
            return "Ice and rock"
        return "Volatiles"
    return "Rock and iron" if radius < 1.6 else "Ice and rock"


def _estimate_orbit(raw: Mapping[str, Any]) -> str:
    eccentricity = _number(first_present(raw, "pl_orbeccen", "eccentricity"))
    if eccentricity is None:
        return "Unknown"
    if eccentricity < 0.1:
        return "Circular"
    if eccentricity < 0.3:
        return "Elliptical"
    return "Highly eccentric"


def _satellites(raw: Mapping[str, Any], published: Mapping[str, Any]) -> Satellites:
    summary = published.get("satellites")
    if isinstance(summary, Mapping):
        count = _integer(summary.get("count")) or 0
        has = summary.get("has_satellites")
        return Satellites(has_satellites=bool(has) if has is not None else count > 0, count=count)
    count = _integer(first_present(raw, "sy_mnum", "moons")) or 0
    return Satellites(has_satellites=count > 0, count=count)


def derive_characteristics(
    raw: Mapping[str, Any], physical: PhysicalAttributes
) -> Characteristics:
    """Published characteristics win; anything missing is estimated from physical data."""
    published = raw.get("characteristics")
    if not isinstance(published, Mapping):
        published = {}

    habitability = _percent(published.get("habitability_percent"))
    toxicity = _percent(published.get("toxicity_percent"))
    return Characteristics(
        habitability_percent=(
            habitability if habitability is not None else _estimate_habitability(physical)
        ),
        toxicity_percent=toxicity if toxicity is not None else _estimate_toxicity(physical),
        atmosphere_type=_text(published.get("atmosphere_type")) or _estimate_atmosphere(physical),
        principal_material=(
            _text(published.get("principal_material")) or _estimate_material(physical)
        ),
        orbit_type=_text(published.get("orbit_type")) or _estimate_orbit(raw),
        satellites=_satellites(raw, published),
    )


def _carried_attributes(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    attrs: dict[str, Any] = {}
    for name, value in raw.items():
        if name in _FRAME_FIELDS:
            continue
        if name == "characteristics" and isinstance(value, Mapping):
            value = MappingProxyType(
                {k: v for k, v in value.items() if k not in _FRAME_FIELDS}
            )
        attrs[name] = value
    return MappingProxyType(attrs)


def build_record(
    raw: Mapping[str, Any], position: CanonicalPosition | None = None
) -> Record:
    """Turn a raw payload record into an immutable Record.

    Args:
        raw: Raw record mapping.
        position: Already reconciled position. Reconciled here when None.

    Raises:
        RecordReconciliationFailure: Missing identity or no usable coordinates.
    """
    key = record_key(raw)
    if key is None:
        name = _text(first_present(raw, "pl_name", "displayName", "name"))
        raise RecordReconciliationFailure(RejectReason.MISSING_IDENTITY, name)

    if position is None:
        outcome = reconcile(raw)
        if isinstance(outcome, RejectReason):
            raise RecordReconciliationFailure(outcome, key.name)
        position = outcome

    physical = physical_attributes(raw)
    return Record(
        key=key,
        is_solar=is_solar_member(raw),
        physical=physical,
        characteristics=derive_characteristics(raw, physical),
        position=position,
        attributes=_carried_attributes(raw),
    )
