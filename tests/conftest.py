"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment before anything imports the settings module.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("RATE_LIMIT_POLICIES", None)

import pytest

from minimal_api.core.config import AppSettings, CacheSettings, RateLimitSettings, Settings
from minimal_api.schemas.policy import FixedWindowPolicy, default_policies


class FakeClock:
    """Deterministic monotonic clock for time-based limiters."""

    def __init__(self, start: float = 0.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings(tmp_path):
    """Build isolated Settings; keyword arguments override rate limiting and cache."""

    def _make(
        *,
        policies=None,
        rate_limit_enabled: bool = True,
        cache_enabled: bool = True,
        max_upload_size_mb: int = 10,
    ) -> Settings:
        return Settings(
            app_env="testing",
            app=AppSettings(upload_dir=str(tmp_path / "uploads"), max_upload_size_mb=max_upload_size_mb),
            rate_limit=RateLimitSettings(
                enabled=rate_limit_enabled,
                policies=default_policies() if policies is None else policies,
            ),
            cache=CacheSettings(enabled=cache_enabled),
        )

    return _make


@pytest.fixture
def strict_fixed_window_policies():
    """Default policies with a small, non-queueing fixed window for /person."""

    policies = [p for p in default_policies() if p.name != "myfixedwindowlimit"]
    policies.append(
        FixedWindowPolicy(
            name="myfixedwindowlimit",
            permit_limit=2,
            window_seconds=10,
            queue_limit=0,
        )
    )
    return policies
