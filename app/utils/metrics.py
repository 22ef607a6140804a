from __future__ import annotations

from typing import Final

from flask import request
from prometheus_client import Counter, Gauge, Histogram

# Keep names stable; dashboards key on them.
MET_REQUESTS: Final = Counter("astro_api_requests_total", "API requests", ["route"])
MET_ERRORS: Final = Counter("astro_api_errors_total", "API error responses", ["route", "kind"])
MET_DESIGN_SEARCH: Final = Counter("astro_design_search_total", "Design-moment searches", ["outcome"])
MET_HOUSE_FALLBACK: Final = Counter(
    "astro_house_fallback_total", "House-system substitutions at polar latitudes", ["requested", "used"]
)
GAUGE_APP_UP: Final = Gauge("astro_app_up", "1 if app is running")
REQ_LATENCY: Final = Histogram("astro_request_seconds", "API request latency", ["route"])

UNMATCHED_ROUTE: Final = "unmatched"
SEEDED_ROUTES: Final = (
    "/api/health",
    "/api/house-systems",
    "/api/positions",
    "/api/positions-with-design",
    UNMATCHED_ROUTE,
)


def route_label() -> str:
    """URL rule of the current request; raw paths would make label cardinality unbounded."""
    rule = request.url_rule
    return rule.rule if rule is not None else UNMATCHED_ROUTE


def seed_metrics() -> None:
    for route in SEEDED_ROUTES:
        MET_REQUESTS.labels(route=route).inc(0)
    for outcome in ("ok", "window_exceeded"):
        MET_DESIGN_SEARCH.labels(outcome=outcome).inc(0)
    GAUGE_APP_UP.set(1.0)
