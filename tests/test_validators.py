# tests/test_validators.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from app.core.timescales import LocalMoment
from app.core.validators import (
    MISSING_PARAMS_MSG,
    MissingParametersError,
    ValidationError,
    parse_date,
    parse_house_system,
    parse_latlon,
    parse_positions_query,
    parse_time,
)

GOOD = {"date": "2023-01-01", "time": "12:00", "lat": "40.7128", "lng": "-74.0060"}


def test_full_query_parses() -> None:
    moment, hs = parse_positions_query({**GOOD, "house_system": "w"})
    assert moment == LocalMoment(2023, 1, 1, 12, 0, 0, 40.7128, -74.006)
    assert hs == "W"

def test_house_system_is_optional() -> None:
    _, hs = parse_positions_query(GOOD)
    assert hs is None

@pytest.mark.parametrize("drop", ["date", "time", "lat", "lng"])
def test_each_required_param_is_enforced(drop) -> None:
    args = {k: v for k, v in GOOD.items() if k != drop}
    with pytest.raises(MissingParametersError) as exc:
        parse_positions_query(args)
    assert [e["loc"] for e in exc.value.errors()] == [[drop]]

def test_missing_message_lists_all_params() -> None:
    assert MISSING_PARAMS_MSG == "Missing required parameters: date, time, lat, lng"

def test_errors_are_aggregated() -> None:
    with pytest.raises(ValidationError) as exc:
        parse_positions_query({"date": "2023-02-30", "time": "25:00", "lat": "91", "lng": "0"})
    locs = [e["loc"] for e in exc.value.errors()]
    assert locs == [["date"], ["time"], ["lat"]]


# ─────────────────────────────────────────────────────────────────────────────
# Atomic parsers
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("s", ["2023-02-30", "2023-13-01", "2023-04-31", "2023-02-29"])
def test_impossible_calendar_dates_rejected(s) -> None:
    with pytest.raises(ValidationError):
        parse_date(s)

def test_leap_day_accepted() -> None:
    assert parse_date("2024-02-29") == (2024, 2, 29)

@pytest.mark.parametrize("s", ["01/02/2023", "2023-1", "", "yesterday"])
def test_malformed_dates_rejected(s) -> None:
    with pytest.raises(ValidationError):
        parse_date(s)

@pytest.mark.parametrize("s,expected", [
    ("00:00", (0, 0, 0)),
    ("7:05", (7, 5, 0)),
    ("23:59:59", (23, 59, 59)),
])
def test_times(s, expected) -> None:
    assert parse_time(s) == expected

@pytest.mark.parametrize("s", ["24:00", "12:60", "12:00:60", "noon", "12"])
def test_bad_times(s) -> None:
    with pytest.raises(ValidationError):
        parse_time(s)

@pytest.mark.parametrize("lat,lng", [("91", "0"), ("0", "-180.5"), ("nan", "0"), ("x", "1"), ("inf", "0")])
def test_bad_coordinates(lat, lng) -> None:
    with pytest.raises(ValidationError):
        parse_latlon(lat, lng)

@given(
    lat=st.floats(min_value=-90, max_value=90, allow_nan=False),
    lng=st.floats(min_value=-180, max_value=180, allow_nan=False),
)
def test_in_range_coordinates_round_trip_through_strings(lat, lng) -> None:
    assert parse_latlon(repr(lat), repr(lng)) == (lat, lng)

@pytest.mark.parametrize("val,expected", [(None, None), ("", None), (" p ", "P"), ("K", "K")])
def test_house_system_codes(val, expected) -> None:
    assert parse_house_system(val) == expected

@pytest.mark.parametrize("val", ["PL", "1", "?"])
def test_house_system_must_be_single_letter(val) -> None:
    with pytest.raises(ValidationError):
        parse_house_system(val)

@pytest.mark.parametrize("s", ["0001-01-01", "9999-12-31"])
def test_years_at_the_calendar_edges_rejected(s) -> None:
    with pytest.raises(ValidationError) as exc:
        parse_date(s)
    assert exc.value.errors()[0]["loc"] == ["date"]

@pytest.mark.parametrize("s,expected", [("0002-01-01", (2, 1, 1)), ("9998-12-31", (9998, 12, 31))])
def test_years_inside_the_supported_range(s, expected) -> None:
    assert parse_date(s) == expected
