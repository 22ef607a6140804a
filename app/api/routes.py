# app/api/routes.py
"""
Astro API routes
- GET /api/positions              chart for a local birth moment
- GET /api/positions-with-design  chart + design chart (88° solar arc earlier)
- GET /api/house-systems          supported house-system codes
- GET /api/health                 liveness probe

Both chart endpoints share _positions_response(); the only difference is
whether the design chart is added.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from app.core.chart import ChartService
from app.core.design import DesignSearchError
from app.core.houses import list_supported_house_systems
from app.core.validators import (
    MISSING_PARAMS_MSG,
    MissingParametersError,
    ValidationError,
    parse_positions_query,
)
from app.utils.metrics import MET_DESIGN_SEARCH, MET_ERRORS, route_label
from app.version import VERSION

log = logging.getLogger(__name__)
api = Blueprint("api", __name__)


# ───────────────────────── helpers ─────────────────────────
def _service() -> ChartService:
    return current_app.extensions["chart_service"]


def _json_error(message: str, details: Any = None, http: int = 400):
    out = {"error": message}
    if details is not None:
        out["details"] = details
    return jsonify(out), http


def _positions_response(include_design: bool):
    try:
        moment, house_system = parse_positions_query(request.args)
    except MissingParametersError as e:
        MET_ERRORS.labels(route=route_label(), kind="missing_parameters").inc()
        return _json_error(MISSING_PARAMS_MSG, e.errors(), 400)
    except ValidationError as e:
        MET_ERRORS.labels(route=route_label(), kind="validation_error").inc()
        return _json_error(str(e), e.errors(), 400)

    try:
        result = _service().compute_positions(moment, house_system, include_design=include_design)
    except DesignSearchError:
        MET_DESIGN_SEARCH.labels(outcome="window_exceeded").inc()
        raise
    if include_design:
        MET_DESIGN_SEARCH.labels(outcome="ok").inc()
    return jsonify(result), 200


# ───────────────────────── endpoints ─────────────────────────
@api.get("/api/health")
def health():
    return jsonify({"status": "ok", "message": "Astro API is running", "version": VERSION}), 200


@api.get("/api/house-systems")
def house_systems():
    return jsonify({
        "default": _service().default_house_system,
        "systems": list_supported_house_systems(),
    }), 200


@api.get("/api/positions")
def positions():
    return _positions_response(include_design=False)


@api.get("/api/positions-with-design")
def positions_with_design():
    return _positions_response(include_design=True)
