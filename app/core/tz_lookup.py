# app/core/tz_lookup.py
from __future__ import annotations

import logging
import threading
from typing import Optional

from timezonefinder import TimezoneFinder

log = logging.getLogger(__name__)


class TimezoneLookup:
    """
    Coordinate → IANA zone id, backed by timezonefinder's bundled boundary data.

    The finder is built on first use (it loads the boundary dataset), then shared
    read-only for the life of the process.
    """

    def __init__(self) -> None:
        self._finder: Optional[TimezoneFinder] = None
        self._lock = threading.Lock()

    def _get_finder(self) -> TimezoneFinder:
        if self._finder is None:
            with self._lock:
                if self._finder is None:
                    self._finder = TimezoneFinder()
                    log.info("timezonefinder dataset loaded")
        return self._finder

    def __call__(self, lat: float, lng: float) -> Optional[str]:
        return self._get_finder().timezone_at(lat=float(lat), lng=float(lng))
