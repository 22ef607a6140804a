# app/core/houses.py
from __future__ import annotations
"""
House-system catalog.

Single-character Swiss Ephemeris codes, accepted case-insensitively. Codes we
do not know are still handed to the ephemeris untouched; they are only labelled
"Unknown (<code>)".

Polar latitudes: time-division systems have no solution once the ecliptic
stops crossing the horizon (|lat| beyond ~66.5°). Swiss Ephemeris reports an
error for them there, and charts fall back to POLAR_FALLBACK_SYSTEM.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

DEFAULT_HOUSE_SYSTEM = "P"
POLAR_FALLBACK_SYSTEM = "O"

# Codes Swiss Ephemeris refuses inside the polar circles
POLAR_SENSITIVE_SYSTEMS: FrozenSet[str] = frozenset({"P", "K", "G"})

HOUSE_SYSTEMS: Dict[str, str] = {
    "W": "Whole Sign",
    "P": "Placidus",
    "K": "Koch",
    "O": "Porphyry",
    "R": "Regiomontanus",
    "C": "Campanus",
    "E": "Equal",
    "V": "Vehlow Equal",
    "A": "Alcabitius",
    "X": "Axial Rotation (Meridian)",
    "M": "Morinus",
    "B": "APC",
}


@dataclass(frozen=True)
class HouseSystem:
    code: str
    name: str

    @property
    def known(self) -> bool:
        return self.code in HOUSE_SYSTEMS

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "name": self.name}


def house_system_name(code: str) -> str:
    return HOUSE_SYSTEMS.get(code.upper(), f"Unknown ({code})")


def resolve_house_system(code: Optional[str], default: str = DEFAULT_HOUSE_SYSTEM) -> HouseSystem:
    c = (code or "").strip().upper() or default.upper()
    return HouseSystem(code=c, name=house_system_name(c))


def list_supported_house_systems() -> List[Dict[str, str]]:
    return [{"code": k, "name": v} for k, v in HOUSE_SYSTEMS.items()]


def is_polar_sensitive(code: str) -> bool:
    return code.upper() in POLAR_SENSITIVE_SYSTEMS
