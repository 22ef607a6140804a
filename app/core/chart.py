# app/core/chart.py
from __future__ import annotations
"""
Chart assembly: normalized instant → Julian day → bodies + houses → ChartResult.

ChartService.compute_positions() backs both HTTP endpoints; the only switch is
whether the design chart is added.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging

from app.core.design import DEFAULT_SOLVER, DesignMoment, SolverConfig, solve_design_moment
from app.core.ephemeris_adapter import GREG_CAL, NORTH_NODE, PLANETS, SUN, EphemerisError, HouseResult
from app.core.houses import POLAR_FALLBACK_SYSTEM, HouseSystem, is_polar_sensitive, resolve_house_system
from app.core.timescales import (
    LocalMoment,
    NormalizedInstant,
    TimezoneLookupFn,
    fractional_hour,
    normalize,
    to_local,
)
from app.utils.metrics import MET_HOUSE_FALLBACK

log = logging.getLogger(__name__)

ZODIAC_SIGNS = (
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
)


def _iso_utc(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


# ───────────────────────── result types ─────────────────────────
@dataclass(frozen=True)
class PlanetPosition:
    name: str
    longitude: float
    latitude: float
    distance: float
    longitude_speed: float

    @property
    def sign(self) -> int:
        return int(self.longitude // 30) % 12 + 1

    @property
    def sign_name(self) -> str:
        return ZODIAC_SIGNS[self.sign - 1]

    @property
    def degree_in_sign(self) -> float:
        return self.longitude % 30.0

    @property
    def retrograde(self) -> bool:
        return self.longitude_speed < 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "longitude": self.longitude,
            "latitude": self.latitude,
            "distance": self.distance,
            "longitudeSpeed": self.longitude_speed,
            "sign": self.sign,
            "signName": self.sign_name,
            "degreeInSign": self.degree_in_sign,
            "retrograde": self.retrograde,
        }


@dataclass(frozen=True)
class ChartResult:
    planets: Tuple[PlanetPosition, ...]
    ascendant: float
    midheaven: float
    houses: Tuple[float, ...]
    house_system: HouseSystem
    moment: LocalMoment
    timezone: str
    utc_instant: datetime
    julian_day: float
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def planet(self, name: str) -> PlanetPosition:
        for p in self.planets:
            if p.name == name:
                return p
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "planets": [p.to_dict() for p in self.planets],
            "ascendant": self.ascendant,
            "midheaven": self.midheaven,
            "houses": list(self.houses),
            "houseSystem": self.house_system.to_dict(),
            "date": self.moment.date_str,
            "time": self.moment.time_str,
            "location": {"latitude": self.moment.latitude, "longitude": self.moment.longitude},
            "timezone": self.timezone,
            "utcDateTime": _iso_utc(self.utc_instant),
            "julianDay": self.julian_day,
            "warnings": list(self.warnings),
        }


# ───────────────────────── service ─────────────────────────
class ChartService:
    """
    Holds the injected collaborators:
      ephemeris  – julian_day / body_position / houses (SwissEphemeris or a stub)
      tz_lookup  – (lat, lng) -> IANA id | None
    """

    def __init__(
        self,
        ephemeris: Any,
        tz_lookup: TimezoneLookupFn,
        *,
        include_node: bool = True,
        default_house_system: str = "P",
        solver: SolverConfig = DEFAULT_SOLVER,
        polar_fallback_system: str = POLAR_FALLBACK_SYSTEM,
    ):
        self.ephemeris = ephemeris
        self.tz_lookup = tz_lookup
        self.include_node = include_node
        self.default_house_system = default_house_system
        self.solver = solver
        self.polar_fallback_system = polar_fallback_system

    @property
    def bodies(self) -> Tuple[Tuple[str, int], ...]:
        return PLANETS + ((NORTH_NODE,) if self.include_node else ())

    def julian_day(self, utc_instant: datetime) -> float:
        return self.ephemeris.julian_day(
            utc_instant.year, utc_instant.month, utc_instant.day,
            fractional_hour(utc_instant), GREG_CAL,
        )

    def sun_longitude_at(self, utc_instant: datetime) -> float:
        return self.ephemeris.body_position(self.julian_day(utc_instant), SUN).longitude

    def _houses(
        self,
        jd: float,
        moment: LocalMoment,
        house_system: HouseSystem,
    ) -> Tuple[HouseResult, HouseSystem, Tuple[str, ...]]:
        try:
            h = self.ephemeris.houses(jd, moment.latitude, moment.longitude, house_system.code)
            return h, house_system, ()
        except EphemerisError as e:
            if not is_polar_sensitive(house_system.code):
                raise
            fallback = resolve_house_system(self.polar_fallback_system)
            log.warning(
                "House system %s failed at lat=%s (%s); using %s",
                house_system.code, moment.latitude, e.message, fallback.code,
            )
        h = self.ephemeris.houses(jd, moment.latitude, moment.longitude, fallback.code)
        MET_HOUSE_FALLBACK.labels(requested=house_system.code, used=fallback.code).inc()
        return h, fallback, ("polar_house_fallback",)

    def _chart_at(
        self,
        moment: LocalMoment,
        instant: NormalizedInstant,
        house_system: HouseSystem,
    ) -> ChartResult:
        jd = self.julian_day(instant.utc_instant)
        planets: List[PlanetPosition] = []
        for name, body_id in self.bodies:
            pos = self.ephemeris.body_position(jd, body_id)
            planets.append(PlanetPosition(
                name=name,
                longitude=pos.longitude,
                latitude=pos.latitude,
                distance=pos.distance,
                longitude_speed=pos.longitude_speed,
            ))
        h, used_system, house_warnings = self._houses(jd, moment, house_system)
        return ChartResult(
            planets=tuple(planets),
            ascendant=h.ascendant,
            midheaven=h.midheaven,
            houses=tuple(h.cusps),
            house_system=used_system,
            moment=moment,
            timezone=instant.timezone_id,
            utc_instant=instant.utc_instant,
            julian_day=jd,
            warnings=tuple(instant.warnings) + house_warnings,
        )

    def compute_chart(self, moment: LocalMoment, house_system: Optional[str] = None) -> ChartResult:
        hs = resolve_house_system(house_system, self.default_house_system)
        instant = normalize(moment, self.tz_lookup)
        log.debug("normalized %s %s -> %s (%s)", moment.date_str, moment.time_str,
                  instant.utc_instant.isoformat(), instant.timezone_id)
        return self._chart_at(moment, instant, hs)

    def compute_design_chart(self, personality: ChartResult) -> Tuple[ChartResult, DesignMoment]:
        """Design chart in the personality's zone; the zone is pinned, not re-resolved."""
        design = solve_design_moment(
            personality.utc_instant,
            personality.planet("Sun").longitude,
            self.sun_longitude_at,
            self.solver,
        )
        wall = to_local(design.utc_instant, personality.timezone)
        moment = LocalMoment.from_wall_clock(
            wall, personality.moment.latitude, personality.moment.longitude
        )
        local_offset = wall - design.utc_instant.replace(tzinfo=None)
        instant = NormalizedInstant(
            utc_instant=design.utc_instant,
            timezone_id=personality.timezone,
            offset_hours=local_offset.total_seconds() / 3600.0,
        )
        return self._chart_at(moment, instant, personality.house_system), design

    def compute_positions(
        self,
        moment: LocalMoment,
        house_system: Optional[str] = None,
        *,
        include_design: bool = False,
    ) -> Dict[str, Any]:
        personality = self.compute_chart(moment, house_system)
        if not include_design:
            return personality.to_dict()

        design_chart, design = self.compute_design_chart(personality)
        return {
            "personality": personality.to_dict(),
            "design": design_chart.to_dict(),
            "metadata": {
                "personalityUtcDateTime": _iso_utc(personality.utc_instant),
                "designUtcDateTime": _iso_utc(design.utc_instant),
                "solarArcDegrees": design.solar_arc_degrees,
                "targetArcDegrees": self.solver.arc_degrees,
                "personalitySunLongitude": personality.planet("Sun").longitude,
                "designSunLongitude": design.solar_longitude,
                "timezone": personality.timezone,
                "lookbackDays": design.lookback_days,
                "iterations": design.iterations,
            },
        }
