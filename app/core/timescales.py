# app/core/timescales.py
# -----------------------------------------------------------------------------
# Local civil time → absolute UTC instant
#
# Public API:
#   normalize(moment, lookup)               -> NormalizedInstant
#   normalize_in_zone(moment, tz_name)      -> NormalizedInstant
#   zone_offset_seconds(tz_name, ...)       -> int   (local − UTC, at that date)
#   to_local(utc_instant, tz_name)          -> datetime (naive wall clock)
#   fractional_hour(dt)                     -> float
#
# Guarantees:
#   • The zone offset is evaluated at the supplied local date, never "now",
#     so DST rules in force on that date apply.
#   • Day rollover from offset arithmetic cascades through month and year.
#   • Unresolvable coordinates fall back to UTC (offset 0).
#   • DST ambiguity (fold) and non-existent wall times (gap) are flagged.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

log = logging.getLogger(__name__)

__all__ = [
    "LocalMoment",
    "NormalizedInstant",
    "normalize",
    "normalize_in_zone",
    "resolve_timezone",
    "zone_offset_seconds",
    "to_local",
    "fractional_hour",
]

UTC_ID = "UTC"
SECONDS_PER_DAY = 86400

TimezoneLookupFn = Callable[[float, float], Optional[str]]


# ───────────────────────────── Dataclasses ─────────────────────────────

@dataclass(frozen=True)
class LocalMoment:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int = 0
    latitude: float = 0.0
    longitude: float = 0.0

    @property
    def date_str(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    @property
    def time_str(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}"

    @classmethod
    def from_wall_clock(cls, wall: datetime, latitude: float, longitude: float) -> "LocalMoment":
        return cls(wall.year, wall.month, wall.day, wall.hour, wall.minute, wall.second,
                   latitude, longitude)


@dataclass(frozen=True)
class NormalizedInstant:
    utc_instant: datetime
    timezone_id: str
    offset_hours: float = 0.0
    warnings: Tuple[str, ...] = ()


# ───────────────────────────── Time zone helpers ─────────────────────────────

def _zone(tz_name: str):
    if tz_name == UTC_ID:
        return timezone.utc
    return ZoneInfo(tz_name)


def resolve_timezone(lat: float, lng: float, lookup: TimezoneLookupFn) -> str:
    """IANA id for the coordinates; UTC when the lookup has nothing or names an unknown zone."""
    tz_name = lookup(lat, lng)
    if not tz_name:
        log.info("No timezone found for lat=%s lng=%s; defaulting to UTC", lat, lng)
        return UTC_ID
    try:
        _zone(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("Timezone %r from lookup is not in the tz database; defaulting to UTC", tz_name)
        return UTC_ID
    return tz_name


def zone_offset_seconds(
    tz_name: str,
    year: int, month: int, day: int,
    hour: int, minute: int, second: int = 0,
) -> Tuple[int, List[str]]:
    """
    Offset (local − UTC, seconds) of `tz_name` at the given wall-clock value.

    The same naive value is read once as zone-local and once as UTC; their
    difference is the offset in force on that date. Prefers fold=0 and warns
    when the wall time is ambiguous or falls in a DST gap.
    """
    z = _zone(tz_name)
    wall = datetime(year, month, day, hour, minute, second)
    as_local = wall.replace(tzinfo=z, fold=0)
    as_utc = wall.replace(tzinfo=timezone.utc)
    offset = int((as_utc - as_local).total_seconds())

    warnings: List[str] = []
    off1 = wall.replace(tzinfo=z, fold=1).utcoffset()
    if off1 is not None and int(off1.total_seconds()) != offset:
        # Both folds disagree: either a repeated hour or a skipped one.
        back = as_local.astimezone(timezone.utc).astimezone(z).replace(tzinfo=None)
        warnings.append("dst_ambiguous" if back == wall else "dst_gap")
    return offset, warnings


# ───────────────────────────── Normalizer ─────────────────────────────

def _roll_day(d: date, seconds_of_day: int) -> Tuple[date, int]:
    """Move the calendar day until seconds_of_day lies within [0, 86400)."""
    while seconds_of_day < 0:
        d -= timedelta(days=1)
        seconds_of_day += SECONDS_PER_DAY
    while seconds_of_day >= SECONDS_PER_DAY:
        d += timedelta(days=1)
        seconds_of_day -= SECONDS_PER_DAY
    return d, seconds_of_day


def normalize_in_zone(moment: LocalMoment, tz_name: str) -> NormalizedInstant:
    """Normalize a local moment whose zone is already known."""
    offset, warnings = zone_offset_seconds(
        tz_name, moment.year, moment.month, moment.day,
        moment.hour, moment.minute, moment.second,
    )
    candidate = moment.hour * 3600 + moment.minute * 60 + moment.second - offset
    try:
        utc_day, secs = _roll_day(date(moment.year, moment.month, moment.day), candidate)
    except OverflowError as e:
        raise ValueError(f"{moment.date_str} {moment.time_str} in {tz_name} falls outside the supported date range") from e
    hh, rem = divmod(secs, 3600)
    mm, ss = divmod(rem, 60)
    utc_instant = datetime(utc_day.year, utc_day.month, utc_day.day, hh, mm, ss, tzinfo=timezone.utc)
    return NormalizedInstant(
        utc_instant=utc_instant,
        timezone_id=tz_name,
        offset_hours=offset / 3600.0,
        warnings=tuple(warnings),
    )


def normalize(moment: LocalMoment, lookup: TimezoneLookupFn) -> NormalizedInstant:
    """Resolve the zone for the moment's coordinates, then normalize to UTC."""
    tz_name = resolve_timezone(moment.latitude, moment.longitude, lookup)
    return normalize_in_zone(moment, tz_name)


# ───────────────────────────── Inverse / helpers ─────────────────────────────

def to_local(utc_instant: datetime, tz_name: str) -> datetime:
    """Wall-clock time (naive) of a UTC instant in `tz_name`."""
    if utc_instant.tzinfo is None:
        raise ValueError("utc_instant must be timezone-aware")
    return utc_instant.astimezone(_zone(tz_name)).replace(tzinfo=None)


def fractional_hour(dt: datetime) -> float:
    return dt.hour + dt.minute / 60.0 + (dt.second + dt.microsecond / 1e6) / 3600.0
