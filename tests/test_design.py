# tests/test_design.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, strategies as st

from app.core.design import (
    DesignSearchError,
    SolverConfig,
    solar_arc_difference,
    solve_design_moment,
)
from app.core.ephemeris_adapter import EphemerisConfig, SwissEphemeris, SUN
from app.core.timescales import fractional_hour
from tests.stubs import StalledSunEphemeris, StubEphemeris

ARC_TOL = 0.01
REF = datetime(2023, 1, 1, 17, 0, tzinfo=timezone.utc)


def _sun_fn(eph):
    def _sun(instant: datetime) -> float:
        jd = eph.julian_day(instant.year, instant.month, instant.day, fractional_hour(instant))
        return eph.body_position(jd, SUN).longitude
    return _sun


# ─────────────────────────────────────────────────────────────────────────────
# solar_arc_difference
# ─────────────────────────────────────────────────────────────────────────────
angles = st.floats(min_value=0.0, max_value=360.0, exclude_max=True, allow_nan=False)

@given(a=angles)
def test_arc_difference_of_equal_longitudes_is_zero(a) -> None:
    assert solar_arc_difference(a, a) == 0.0

@given(a=angles, b=angles)
def test_arc_difference_range(a, b) -> None:
    d = solar_arc_difference(a, b)
    assert 0.0 <= d < 360.0

def test_arc_difference_measures_how_far_b_trails_a() -> None:
    assert solar_arc_difference(100.0, 12.0) == pytest.approx(88.0)
    assert solar_arc_difference(10.0, 282.0) == pytest.approx(88.0)  # across 0° Aries
    assert solar_arc_difference(12.0, 100.0) == pytest.approx(272.0)


# ─────────────────────────────────────────────────────────────────────────────
# Solver against the mean-motion stub
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("eccentric", [False, True])
def test_design_precedes_reference_by_the_target_arc(eccentric) -> None:
    sun = _sun_fn(StubEphemeris(eccentric=eccentric))
    target = sun(REF)
    dm = solve_design_moment(REF, target, sun)

    assert dm.utc_instant < REF
    assert abs(dm.solar_arc_degrees - 88.0) <= ARC_TOL
    assert solar_arc_difference(target, dm.solar_longitude) == pytest.approx(dm.solar_arc_degrees)
    assert timedelta(days=85) <= REF - dm.utc_instant <= timedelta(days=200)

def test_mean_motion_solution_is_about_89_days_back() -> None:
    sun = _sun_fn(StubEphemeris())
    dm = solve_design_moment(REF, sun(REF), sun)
    days = (REF - dm.utc_instant).total_seconds() / 86400.0
    assert days == pytest.approx(88.0 / 0.9856474, abs=1e-3)
    assert dm.lookback_days == 95.0
    assert dm.iterations == 60

def test_target_arc_is_configurable() -> None:
    sun = _sun_fn(StubEphemeris())
    cfg = SolverConfig(arc_degrees=45.0, initial_lookback_days=50.0)
    dm = solve_design_moment(REF, sun(REF), sun, cfg)
    assert abs(dm.solar_arc_degrees - 45.0) <= ARC_TOL

def test_bracket_extends_in_steps_when_first_lookback_is_short() -> None:
    sun = _sun_fn(StubEphemeris())
    # 95 d of mean motion is only ~93.6°, so a 120° arc needs later steps
    cfg = SolverConfig(arc_degrees=120.0)
    dm = solve_design_moment(REF, sun(REF), sun, cfg)
    assert dm.lookback_days == 125.0
    assert abs(dm.solar_arc_degrees - 120.0) <= ARC_TOL

def test_evaluation_budget_is_bracket_plus_fixed_iterations_plus_endpoints() -> None:
    base = _sun_fn(StubEphemeris())
    evaluations = []
    def sun(instant):
        evaluations.append(instant)
        return base(instant)
    solve_design_moment(REF, base(REF), sun)
    assert len(evaluations) == 1 + 60 + 2


# ─────────────────────────────────────────────────────────────────────────────
# Failure: search window exceeded
# ─────────────────────────────────────────────────────────────────────────────

def test_stalled_sun_exceeds_search_window() -> None:
    sun = _sun_fn(StalledSunEphemeris())
    evaluations = []
    def tracking(instant):
        evaluations.append((REF - instant).days)
        return sun(instant)
    with pytest.raises(DesignSearchError) as exc:
        solve_design_moment(REF, sun(REF), tracking)
    assert "window exceeded" in str(exc.value)
    assert exc.value.max_lookback_days == 200.0
    assert evaluations == [95, 105, 115, 125, 135, 145, 155, 165, 175, 185, 195, 200]

@pytest.mark.parametrize("kwargs", [
    {"arc_degrees": 0.0},
    {"arc_degrees": 360.0},
    {"iterations": 0},
    {"initial_lookback_days": 250.0},
    {"lookback_step_days": 0.0},
])
def test_solver_config_rejects_nonsense(kwargs) -> None:
    with pytest.raises(ValueError):
        SolverConfig(**kwargs)


# ─────────────────────────────────────────────────────────────────────────────
# Swiss Ephemeris (built-in model when no data files are present)
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.live
@pytest.mark.parametrize("ref", [
    REF,
    datetime(1985, 7, 14, 3, 45, tzinfo=timezone.utc),   # near aphelion, slow Sun
    datetime(2000, 3, 20, 7, 35, tzinfo=timezone.utc),   # arc spans 0° Aries
])
def test_design_moment_with_swiss_ephemeris(ref) -> None:
    sun = _sun_fn(SwissEphemeris(EphemerisConfig()))
    target = sun(ref)
    dm = solve_design_moment(ref, target, sun)
    assert abs(solar_arc_difference(target, dm.solar_longitude) - 88.0) <= ARC_TOL
    assert timedelta(days=85) <= ref - dm.utc_instant <= timedelta(days=95)
