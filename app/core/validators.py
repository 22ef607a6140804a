# app/core/validators.py
from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from app.core.timescales import LocalMoment

# ───────────────────────── errors ─────────────────────────

class ValidationError(ValueError):
    """Structured validator error (has .errors())."""
    def __init__(self, details: Union[str, Dict[str, Any], List[Dict[str, Any]]]):
        if isinstance(details, str):
            self._details = [{"loc": [], "msg": details, "type": "value_error"}]
            super().__init__(details)
        elif isinstance(details, dict):
            self._details = [details]
            super().__init__(details.get("msg", "validation_error"))
        elif isinstance(details, list):
            self._details = details
            super().__init__(self._details[0]["msg"] if self._details else "validation_error")
        else:
            self._details = [{"loc": [], "msg": "validation_error", "type": "value_error"}]
            super().__init__("validation_error")

    def errors(self) -> List[Dict[str, Any]]:
        return list(self._details)


class MissingParametersError(ValidationError):
    """One or more of the required query parameters is absent."""


REQUIRED_PARAMS = ("date", "time", "lat", "lng")
MISSING_PARAMS_MSG = "Missing required parameters: " + ", ".join(REQUIRED_PARAMS)


# ───────────────────────── helpers ─────────────────────────

def _err(loc: List[str] | str, msg: str, typ: str = "value_error") -> Dict[str, Any]:
    return {"loc": [loc] if isinstance(loc, str) else loc, "msg": msg, "type": typ}

def _as_float(v: Any) -> Optional[float]:
    try:
        if v is None:
            return None
        x = float(v)
        if x != x or x in (float("inf"), float("-inf")):
            return None
        return x
    except (TypeError, ValueError):
        return None


# ───────────────────────── atomic parsers ─────────────────────────

_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})\s*$")
_TIME_RE = re.compile(r"^\s*(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2}))?\s*$")
_HOUSE_RE = re.compile(r"^[A-Za-z]$")

# Day rollover and the design lookback (≤ 200 d) must stay inside datetime's range.
MIN_YEAR = 2
MAX_YEAR = 9998

def parse_date(s: str) -> Tuple[int, int, int]:
    """YYYY-MM-DD → (y, m, d). Dates that do not exist on the calendar are rejected."""
    m = _DATE_RE.match(s or "")
    if not m:
        raise ValidationError(_err("date", "date must be 'YYYY-MM-DD'", "value_error.date"))
    y, mo, d = int(m.group(1)), int(m.group(2)), int(m.group(3))
    if not (MIN_YEAR <= y <= MAX_YEAR):
        raise ValidationError(_err("date", f"year must be between {MIN_YEAR} and {MAX_YEAR}", "value_error.date"))
    try:
        datetime(y, mo, d)
    except ValueError:
        raise ValidationError(_err("date", f"'{s}' is not a valid calendar date", "value_error.date"))
    return y, mo, d

def parse_time(s: str) -> Tuple[int, int, int]:
    """HH:MM or HH:MM:SS → (h, m, s); seconds default to 0."""
    m = _TIME_RE.match(s or "")
    if not m:
        raise ValidationError(_err("time", "time must be 'HH:MM' or 'HH:MM:SS'", "value_error.time"))
    hh = int(m.group("h")); mm = int(m.group("m")); ss = int(m.group("s") or 0)
    if not (0 <= hh <= 23 and 0 <= mm <= 59 and 0 <= ss <= 59):
        raise ValidationError(_err("time", "time fields out of range", "value_error.time"))
    return hh, mm, ss

def parse_latlon(lat: Any, lon: Any, lat_key="lat", lon_key="lng") -> Tuple[float, float]:
    lat_f = _as_float(lat); lon_f = _as_float(lon)
    if lat_f is None or lon_f is None:
        raise ValidationError(_err([lat_key, lon_key], "latitude/longitude must be finite numbers", "type_error.float"))
    if not (-90.0 <= lat_f <= 90.0):
        raise ValidationError(_err(lat_key, "latitude must be between -90 and 90"))
    if not (-180.0 <= lon_f <= 180.0):
        raise ValidationError(_err(lon_key, "longitude must be between -180 and 180"))
    return float(lat_f), float(lon_f)

def parse_house_system(val: Any | None) -> Optional[str]:
    if val is None:
        return None
    s = str(val).strip()
    if not s:
        return None
    if not _HOUSE_RE.match(s):
        raise ValidationError(_err("house_system", "house_system must be a single letter code", "value_error.house_system"))
    return s.upper()


# ───────────────────────── composite parser ─────────────────────────

def parse_positions_query(args: Mapping[str, Any]) -> Tuple[LocalMoment, Optional[str]]:
    """Query args of /api/positions* → (LocalMoment, house code or None)."""
    if any(not args.get(k) for k in REQUIRED_PARAMS):
        missing = [k for k in REQUIRED_PARAMS if not args.get(k)]
        raise MissingParametersError([
            _err(k, "required", "value_error.missing") for k in missing
        ])

    errors: List[Dict[str, Any]] = []
    parsed: Dict[str, Any] = {}
    for key, fn in (("date", parse_date), ("time", parse_time)):
        try:
            parsed[key] = fn(str(args.get(key)))
        except ValidationError as e:
            errors.extend(e.errors())
    try:
        parsed["latlon"] = parse_latlon(args.get("lat"), args.get("lng"))
    except ValidationError as e:
        errors.extend(e.errors())
    try:
        parsed["house_system"] = parse_house_system(args.get("house_system"))
    except ValidationError as e:
        errors.extend(e.errors())
    if errors:
        raise ValidationError(errors)

    (y, mo, d), (hh, mm, ss), (lat, lng) = parsed["date"], parsed["time"], parsed["latlon"]
    return LocalMoment(y, mo, d, hh, mm, ss, lat, lng), parsed["house_system"]
