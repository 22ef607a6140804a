# app/utils/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import yaml

from app.core.design import SolverConfig
from app.core.ephemeris_adapter import BUNDLED_EPHE_PATH
from app.core.houses import DEFAULT_HOUSE_SYSTEM, POLAR_FALLBACK_SYSTEM, is_polar_sensitive

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/defaults.yaml"


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.design and cfg['design'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value

def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj

def _truthy(val: Any, default: bool) -> bool:
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in ("1", "true", "yes", "on")

def load_config(path: str) -> AttrDict:
    """
    Load YAML config from `path`. Returns an AttrDict for convenient access.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return _to_attr(data)


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, resolved once at startup and read-only afterwards."""
    ephe_path: str = BUNDLED_EPHE_PATH
    default_house_system: str = DEFAULT_HOUSE_SYSTEM
    polar_fallback_system: str = POLAR_FALLBACK_SYSTEM
    include_node: bool = True
    solver: SolverConfig = field(default_factory=SolverConfig)
    cors_allow_origin: str = "*"


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Merge (lowest → highest precedence): built-in defaults, YAML file, environment.

    Environment:
      ASTRO_CONFIG                 YAML path (default config/defaults.yaml)
      SWEPH_PATH                   ephemeris data directory
      ASTRO_DEFAULT_HOUSE_SYSTEM   house code used when the request has none
      ASTRO_POLAR_FALLBACK_SYSTEM  house code used where the requested one fails near the poles
      ASTRO_INCLUDE_NODE           include the true lunar node (1/0)
      ASTRO_DESIGN_ARC_DEG         solar arc of the design chart
      CORS_ALLOW_ORIGIN            allowed browser origin
    """
    env = os.environ if env is None else env
    path = path or env.get("ASTRO_CONFIG", DEFAULT_CONFIG_PATH)
    try:
        cfg = load_config(path)
    except FileNotFoundError:
        log.info("Config file %s not found; using built-in defaults", path)
        cfg = AttrDict()

    eph = cfg.get("ephemeris") or {}
    houses = cfg.get("houses") or {}
    design = cfg.get("design") or {}
    cors = cfg.get("cors") or {}

    solver_kwargs = {
        k: design[k]
        for k in ("arc_degrees", "initial_lookback_days", "lookback_step_days", "max_lookback_days", "iterations")
        if design.get(k) is not None
    }
    if env.get("ASTRO_DESIGN_ARC_DEG"):
        solver_kwargs["arc_degrees"] = float(env["ASTRO_DESIGN_ARC_DEG"])

    polar_fallback = (
        env.get("ASTRO_POLAR_FALLBACK_SYSTEM") or houses.get("polar_fallback") or POLAR_FALLBACK_SYSTEM
    ).upper()
    if is_polar_sensitive(polar_fallback):
        raise ValueError(f"polar fallback house system {polar_fallback!r} fails near the poles itself")

    return Settings(
        ephe_path=env.get("SWEPH_PATH") or eph.get("path") or BUNDLED_EPHE_PATH,
        default_house_system=(
            env.get("ASTRO_DEFAULT_HOUSE_SYSTEM") or houses.get("default_system") or DEFAULT_HOUSE_SYSTEM
        ).upper(),
        polar_fallback_system=polar_fallback,
        include_node=_truthy(env.get("ASTRO_INCLUDE_NODE"), _truthy(eph.get("include_node"), True)),
        solver=SolverConfig(**solver_kwargs),
        cors_allow_origin=env.get("CORS_ALLOW_ORIGIN") or cors.get("allow_origin") or "*",
    )
