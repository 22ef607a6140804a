# app/core/ephemeris_adapter.py
# -----------------------------------------------------------------------------
# Swiss Ephemeris adapter
#
# The only module that talks to pyswisseph. Everything else depends on the three
# operations exposed here, so tests can swap in a deterministic stub:
#   julian_day(year, month, day, fractional_hour, calendar)  -> float
#   body_position(jd_ut, body_id, flags=None)                -> BodyPosition
#   houses(jd_ut, lat, lng, system_code)                     -> HouseResult
#
# The data-file directory is explicit configuration handed to the constructor.
# Missing data files are logged, not fatal: Swiss Ephemeris falls back to its
# built-in Moshier model, and calls that genuinely fail raise EphemerisError.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple
import logging
import os

import swisseph as swe

log = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────
BUNDLED_EPHE_PATH = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "..", "ephe")
)

GREG_CAL = swe.GREG_CAL
SUN = swe.SUN
DEFAULT_FLAGS = swe.FLG_SWIEPH | swe.FLG_SPEED

PLANETS: Tuple[Tuple[str, int], ...] = (
    ("Sun", swe.SUN),
    ("Moon", swe.MOON),
    ("Mercury", swe.MERCURY),
    ("Venus", swe.VENUS),
    ("Mars", swe.MARS),
    ("Jupiter", swe.JUPITER),
    ("Saturn", swe.SATURN),
    ("Uranus", swe.URANUS),
    ("Neptune", swe.NEPTUNE),
    ("Pluto", swe.PLUTO),
)
NORTH_NODE: Tuple[str, int] = ("North Node", swe.TRUE_NODE)

_J2000_JD = 2451545.0


# ─────────────────────────────────────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────────────────────────────────────
class EphemerisError(RuntimeError):
    """Categorized error for adapter callers."""
    def __init__(self, stage: str, message: str, **context: Any):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.context = context


# ─────────────────────────────────────────────────────────────────────────────
# Result types
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class BodyPosition:
    longitude: float
    latitude: float
    distance: float
    longitude_speed: float
    latitude_speed: float = 0.0
    distance_speed: float = 0.0


@dataclass(frozen=True)
class HouseResult:
    ascendant: float
    midheaven: float
    cusps: Tuple[float, ...]


@dataclass(frozen=True)
class EphemerisConfig:
    ephe_path: str = BUNDLED_EPHE_PATH
    flags: int = DEFAULT_FLAGS


# ─────────────────────────────────────────────────────────────────────────────
# Adapter
# ─────────────────────────────────────────────────────────────────────────────
class SwissEphemeris:
    """pyswisseph-backed ephemeris collaborator."""

    def __init__(self, config: Optional[EphemerisConfig] = None):
        self.config = config or EphemerisConfig()
        self.data_files_found = False
        self.self_test_ok = False
        self._configure()

    def _configure(self) -> None:
        path = self.config.ephe_path
        self.data_files_found = bool(path) and os.path.isdir(path)
        if self.data_files_found:
            swe.set_ephe_path(path)
            log.info("Set ephemeris path to: %s", path)
        else:
            log.warning(
                "Ephemeris directory %r not found; Swiss Ephemeris will use its built-in model",
                path,
            )

        try:
            xx, _ = swe.calc_ut(_J2000_JD, swe.SUN, self.config.flags)
            self.self_test_ok = True
            log.info("Ephemeris self-test OK: Sun at %.4f° for J2000", xx[0])
        except swe.Error as e:
            log.error("Ephemeris self-test failed: %s", e)

    def julian_day(
        self,
        year: int,
        month: int,
        day: int,
        fractional_hour: float,
        calendar: int = GREG_CAL,
    ) -> float:
        return float(swe.julday(int(year), int(month), int(day), float(fractional_hour), calendar))

    def body_position(self, jd_ut: float, body_id: int, flags: Optional[int] = None) -> BodyPosition:
        try:
            xx, _ = swe.calc_ut(float(jd_ut), int(body_id), self.config.flags if flags is None else flags)
        except swe.Error as e:
            raise EphemerisError("calc_ut", str(e), jd_ut=jd_ut, body_id=body_id) from e
        return BodyPosition(
            longitude=float(xx[0]) % 360.0,
            latitude=float(xx[1]),
            distance=float(xx[2]),
            longitude_speed=float(xx[3]),
            latitude_speed=float(xx[4]),
            distance_speed=float(xx[5]),
        )

    def houses(self, jd_ut: float, lat: float, lng: float, system_code: str) -> HouseResult:
        hsys = str(system_code)[:1].upper().encode("ascii")
        try:
            cusps, ascmc = swe.houses(float(jd_ut), float(lat), float(lng), hsys)
        except swe.Error as e:
            raise EphemerisError("houses", str(e), jd_ut=jd_ut, system=system_code) from e
        # older pyswisseph builds return a 13-slot tuple with an unused index 0
        cusp_list: List[float] = list(cusps[1:13]) if len(cusps) == 13 else list(cusps[:12])
        return HouseResult(
            ascendant=float(ascmc[0]) % 360.0,
            midheaven=float(ascmc[1]) % 360.0,
            cusps=tuple(float(c) % 360.0 for c in cusp_list),
        )

    def diagnostics(self) -> dict:
        return {
            "ephe_path": self.config.ephe_path,
            "data_files_found": self.data_files_found,
            "self_test_ok": self.self_test_ok,
            "swisseph_version": getattr(swe, "version", None),
        }
