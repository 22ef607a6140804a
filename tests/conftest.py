# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the astro API suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC (we always pass IANA zones explicitly).
- Provides a deterministic stub ephemeris and fixed timezone lookups so the
  normalizer, solver and routes can be tested without Swiss Ephemeris data.
- Adds a 'live' marker for tests that hit pyswisseph and timezonefinder.
"""

import os

import pytest
from hypothesis import settings, HealthCheck

from tests.stubs import StubEphemeris, fixed_lookup


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # avoid flaky timeouts on slower runners
        max_examples=60,         # fast local runs
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,        # a bit more coverage in CI
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "live: uses the real pyswisseph / timezonefinder backends")
    config.addinivalue_line("filterwarnings", "ignore::DeprecationWarning")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    """
    Ensure the process TZ is UTC so any library that *might* consult TZ
    (even though we pass IANA zones explicitly) is deterministic.
    """
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture(scope="session")
def ensure_tzdata():
    """
    Sanity-check that core IANA zones resolve on this machine.
    If tzdata is missing on a CI runner, install the 'tzdata' package.
    """
    from zoneinfo import ZoneInfo
    for name in ("UTC", "Asia/Kolkata", "America/New_York", "Etc/GMT-2"):
        ZoneInfo(name)


@pytest.fixture
def stub_ephemeris():
    return StubEphemeris()


@pytest.fixture
def stub_client():
    from app.main import create_app
    from app.utils.config import Settings

    app = create_app(
        Settings(),
        ephemeris=StubEphemeris(),
        tz_lookup=fixed_lookup("America/New_York"),
    )
    app.testing = True
    return app.test_client()


@pytest.fixture(scope="session")
def live_client():
    from app.main import create_app
    from app.utils.config import Settings

    app = create_app(Settings())
    app.testing = True
    return app.test_client()
