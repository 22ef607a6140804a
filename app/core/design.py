# app/core/design.py
# -*- coding: utf-8 -*-
"""
Design-moment solver.

The design instant is the UTC moment before birth at which the Sun stood a
fixed solar arc (88° by default) behind its birth longitude.

APIs
----
solar_arc_difference(a, b) -> float
    (a − b + 360) mod 360, always in [0, 360): how far `b` trails `a`.

solve_design_moment(
    reference_utc: datetime,          # birth instant (aware, UTC)
    target_longitude: float,          # Sun longitude at reference_utc
    sun_longitude_at: Callable[[datetime], float],
    config: SolverConfig = DEFAULT_SOLVER,
) -> DesignMoment

Method
------
1. Bracket: step back from the reference (95 d, then +10 d up to 200 d) until
   the arc difference reaches the target arc. Going backwards the difference
   grows monotonically and cannot wrap inside this window.
2. Bisection between that lookback instant (diff ≥ arc) and the reference
   (diff = 0) for a fixed number of iterations, keeping the candidate with the
   smallest |diff − arc|. Both final bracket ends are checked as well.

The achieved arc is reported as-is so callers can judge the residual.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterator, Optional

__all__ = [
    "SolverConfig",
    "DEFAULT_SOLVER",
    "DesignMoment",
    "DesignSearchError",
    "solar_arc_difference",
    "solve_design_moment",
]


@dataclass(frozen=True)
class SolverConfig:
    arc_degrees: float = 88.0
    initial_lookback_days: float = 95.0
    lookback_step_days: float = 10.0
    max_lookback_days: float = 200.0
    iterations: int = 60

    def __post_init__(self) -> None:
        if not (0.0 < self.arc_degrees < 360.0):
            raise ValueError("arc_degrees must be within (0, 360)")
        if self.initial_lookback_days <= 0 or self.lookback_step_days <= 0:
            raise ValueError("lookback days must be > 0")
        if self.max_lookback_days < self.initial_lookback_days:
            raise ValueError("max_lookback_days must be >= initial_lookback_days")
        if self.iterations < 1:
            raise ValueError("iterations must be >= 1")


DEFAULT_SOLVER = SolverConfig()


@dataclass(frozen=True)
class DesignMoment:
    utc_instant: datetime
    solar_longitude: float
    solar_arc_degrees: float
    lookback_days: float
    iterations: int


class DesignSearchError(RuntimeError):
    """The bracket never reached the target arc inside the search window."""
    def __init__(self, message: str, *, max_lookback_days: float, last_arc: Optional[float]):
        super().__init__(message)
        self.max_lookback_days = max_lookback_days
        self.last_arc = last_arc


def solar_arc_difference(a: float, b: float) -> float:
    d = (float(a) - float(b) + 360.0) % 360.0
    return 0.0 if d >= 360.0 else d


@dataclass(frozen=True)
class _Candidate:
    instant: datetime
    longitude: float
    arc: float
    deviation: float


def _lookbacks(config: SolverConfig) -> Iterator[float]:
    days = config.initial_lookback_days
    while days < config.max_lookback_days:
        yield days
        days += config.lookback_step_days
    yield config.max_lookback_days


def solve_design_moment(
    reference_utc: datetime,
    target_longitude: float,
    sun_longitude_at: Callable[[datetime], float],
    config: SolverConfig = DEFAULT_SOLVER,
) -> DesignMoment:
    arc = config.arc_degrees

    def _evaluate(instant: datetime) -> _Candidate:
        lon = float(sun_longitude_at(instant)) % 360.0
        diff = solar_arc_difference(target_longitude, lon)
        return _Candidate(instant, lon, diff, abs(diff - arc))

    # 1) bracket
    low: Optional[datetime] = None
    lookback_used = 0.0
    last_arc: Optional[float] = None
    for days in _lookbacks(config):
        probe = _evaluate(reference_utc - timedelta(days=days))
        last_arc = probe.arc
        if probe.arc >= arc:
            low, lookback_used = probe.instant, days
            break
    if low is None:
        raise DesignSearchError(
            f"Design search window exceeded: solar arc stayed below {arc}° "
            f"within {config.max_lookback_days:g} days",
            max_lookback_days=config.max_lookback_days,
            last_arc=last_arc,
        )

    # 2) bisection
    high = reference_utc
    best: Optional[_Candidate] = None
    for _ in range(config.iterations):
        mid = _evaluate(low + (high - low) / 2)
        if best is None or mid.deviation < best.deviation:
            best = mid
        if mid.arc > arc:
            low = mid.instant
        else:
            high = mid.instant

    for end in (_evaluate(low), _evaluate(high)):
        if end.deviation < best.deviation:
            best = end

    return DesignMoment(
        utc_instant=best.instant,
        solar_longitude=best.longitude,
        solar_arc_degrees=best.arc,
        lookback_days=lookback_used,
        iterations=config.iterations,
    )
