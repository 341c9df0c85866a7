"""Fixed solar-system seed set, inserted before any catalog tier loads."""

import math
from typing import Any

from exoatlas.reconcile import SOLAR_HOST

# name, radius (R⊕), mass (M⊕), T_eq (K), semi-major axis (AU), orbital angle (deg),
# eccentricity, moons, discovery year, discovery method,
# habitability %, toxicity %, atmosphere, principal material
_PLANETS: tuple[tuple[Any, ...], ...] = (
    ("Mercury", 0.383, 0.0553, 440, 0.387, 48.0, 0.206, 0, None, "Naked eye",
     0, 60, "Trace exosphere", "Rock and iron"),
    ("Venus", 0.949, 0.815, 232, 0.723, 131.0, 0.007, 0, None, "Naked eye",
     2, 95, "Thick CO2", "Rock and iron"),
    ("Earth", 1.0, 1.0, 255, 1.0, 0.0, 0.017, 1, None, "Naked eye",
     100, 0, "Nitrogen-Oxygen", "Rock and iron"),
    ("Mars", 0.532, 0.107, 210, 1.524, 286.0, 0.093, 2, None, "Naked eye",
     15, 40, "Thin CO2", "Rock and iron"),
    ("Jupiter", 11.21, 317.8, 110, 5.203, 14.0, 0.049, 95, None, "Naked eye",
     0, 80, "Hydrogen-Helium", "Gas"),
    ("Saturn", 9.45, 95.2, 81, 9.537, 92.0, 0.057, 146, None, "Naked eye",
     0, 80, "Hydrogen-Helium", "Gas"),
    ("Uranus", 4.01, 14.5, 58, 19.19, 170.0, 0.046, 28, 1781, "Telescope",
     0, 70, "Hydrogen-Helium-Methane", "Ice and rock"),
    ("Neptune", 3.88, 17.1, 46, 30.07, 304.0, 0.010, 16, 1846, "Telescope",
     0, 70, "Hydrogen-Helium-Methane", "Ice and rock"),
)


def _orbit_position(semi_major_au: float, angle_deg: float) -> dict[str, float]:
    angle = math.radians(angle_deg)
    return {
        "x": round(semi_major_au * math.cos(angle), 6),
        "y": 0.0,
        "z": round(semi_major_au * math.sin(angle), 6),
    }


def _orbit_type(eccentricity: float) -> str:
    return "Circular" if eccentricity < 0.1 else "Elliptical"


def solar_system_records() -> tuple[dict[str, Any], ...]:
    """Raw records for the eight planets, in ephemeris (AU) coordinates.

    Fresh dicts are returned on every call so one session can never alter
    another's seed payload.
    """
    records = []
    for (name, radius, mass, teq, a, angle, ecc, moons, year, method,
         habitability, toxicity, atmosphere, material) in _PLANETS:
        records.append(
            {
                "pl_name": name,
                "hostname": SOLAR_HOST,
                "isSolar": True,
                "pl_rade": radius,
                "pl_bmasse": mass,
                "pl_eqt": teq,
                "pl_orbsmax": a,
                "pl_orbeccen": ecc,
                "disc_year": year,
                "discoverymethod": method,
                "sy_dist": 0.0,
                "sy_mnum": moons,
                "position": _orbit_position(a, angle),
                "characteristics": {
                    "habitability_percent": habitability,
                    "toxicity_percent": toxicity,
                    "atmosphere_type": atmosphere,
                    "principal_material": material,
                    "orbit_type": _orbit_type(ecc),
                    "satellites": {"has_satellites": moons > 0, "count": moons},
                },
            }
        )
    return tuple(records)


SOLAR_SYSTEM_SIZE = len(_PLANETS)
