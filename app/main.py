# app/main.py
from __future__ import annotations

import logging
import os
import traceback
from time import perf_counter
from typing import Any, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from werkzeug.exceptions import HTTPException, NotFound
from werkzeug.middleware.proxy_fix import ProxyFix

from app.api.routes import api as api_bp
from app.core.chart import ChartService
from app.core.design import DesignSearchError
from app.core.ephemeris_adapter import EphemerisConfig, EphemerisError, SwissEphemeris
from app.core.timescales import TimezoneLookupFn
from app.core.tz_lookup import TimezoneLookup
from app.utils.config import Settings, load_settings
from app.utils.metrics import GAUGE_APP_UP, MET_ERRORS, MET_REQUESTS, REQ_LATENCY, route_label, seed_metrics
from app.version import VERSION


# ───────────────────────── helpers: logging & errors ─────────────────────────
def _configure_logging(app: Flask) -> None:
    gerr = logging.getLogger("gunicorn.error")
    if gerr.handlers:
        app.logger.handlers = gerr.handlers
        app.logger.setLevel(gerr.level)
    else:
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

def _register_errors(app: Flask) -> None:
    @app.errorhandler(NotFound)
    def _not_found(_e: NotFound):
        return jsonify(error="Not found"), 404

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        app.logger.warning("HTTP %s at %s %s: %s", e.code, request.method, request.path, e.description)
        return jsonify(error=e.description, code=e.code, name=e.name), e.code

    @app.errorhandler(DesignSearchError)
    def _design(e: DesignSearchError):
        app.logger.error("Design search failed at %s: %s (last arc=%s)", request.path, e, e.last_arc)
        MET_ERRORS.labels(route=route_label(), kind="design_search_error").inc()
        return jsonify(error=str(e), type="design_search_error"), 500

    @app.errorhandler(EphemerisError)
    def _ephemeris(e: EphemerisError):
        app.logger.error("Ephemeris failure at %s [%s]: %s", request.path, e.stage, e.message)
        MET_ERRORS.labels(route=route_label(), kind="ephemeris_error").inc()
        return jsonify(error=str(e), type="ephemeris_error"), 500

    @app.errorhandler(Exception)
    def _any(e: Exception):
        tb = traceback.format_exc()
        app.logger.error("UNHANDLED %s at %s %s\n%s", type(e).__name__, request.method, request.path, tb)
        MET_ERRORS.labels(route=route_label(), kind="internal_error").inc()
        return jsonify(error=str(e), type=type(e).__name__), 500

def _metrics_auth_ok() -> bool:
    auth = request.authorization
    user = os.getenv("METRICS_USER", "")
    pw = os.getenv("METRICS_PASS", "")
    return bool(
        auth and auth.type == "basic" and auth.username == user and auth.password == pw and user and pw
    )


# ───────────────────────── app factory ─────────────────────────
def create_app(
    settings: Optional[Settings] = None,
    *,
    ephemeris: Any = None,
    tz_lookup: Optional[TimezoneLookupFn] = None,
) -> Flask:
    """
    Collaborators are injectable so tests can run against stubs:
      ephemeris  – defaults to SwissEphemeris configured with settings.ephe_path
      tz_lookup  – defaults to timezonefinder-backed TimezoneLookup
    """
    app = Flask(__name__)
    app.json.sort_keys = False
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    _configure_logging(app)

    settings = settings or load_settings()
    app.config["ASTRO_SETTINGS"] = settings

    if ephemeris is None:
        ephemeris = SwissEphemeris(EphemerisConfig(ephe_path=settings.ephe_path))
    app.extensions["chart_service"] = ChartService(
        ephemeris,
        tz_lookup or TimezoneLookup(),
        include_node=settings.include_node,
        default_house_system=settings.default_house_system,
        polar_fallback_system=settings.polar_fallback_system,
        solver=settings.solver,
    )

    seed_metrics()

    @app.before_request
    def _before():
        p = request.path or ""
        if p.startswith("/api/"):
            MET_REQUESTS.labels(route=route_label()).inc()
            request.environ["astro.t0"] = perf_counter()

    @app.after_request
    def _after(resp):
        t0 = request.environ.get("astro.t0")
        if t0 is not None:
            REQ_LATENCY.labels(route=route_label()).observe(perf_counter() - t0)
        return resp

    _register_errors(app)
    app.register_blueprint(api_bp)

    # /metrics (Basic Auth)
    @app.route("/metrics", methods=["GET"])
    def metrics_endpoint():
        if not _metrics_auth_ok():
            return Response("Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="metrics"'})
        GAUGE_APP_UP.set(1.0)
        return Response(generate_latest(REGISTRY), mimetype=CONTENT_TYPE_LATEST)

    # CORS for browser UIs
    CORS(
        app,
        resources={r"/api/*": {"origins": settings.cors_allow_origin}},
        supports_credentials=False,
        methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )

    app.logger.info(
        "App initialized; version=%s ephe_path=%s include_node=%s design_arc=%s",
        VERSION, settings.ephe_path, settings.include_node, settings.solver.arc_degrees,
    )
    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
