"""Pytest configuration and shared fixtures for price guide tests.

This module provides:
- Basic pytest configuration
- In-memory store and clock fixtures
- Setup/teardown for test isolation
"""

import os
import sys
from pathlib import Path
import pytest

# Add project root to Python path to allow imports from priceguide and cli
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from priceguide import redis_client  # noqa: E402
from tests.fixtures.fake_store import FakeClock, FakeStore  # noqa: E402


# ==================== Pytest Configuration ====================

def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers",
        "unit: mark test as a unit test (fast, isolated)"
    )
    config.addinivalue_line(
        "markers",
        "integration: mark test as an integration test (slower, multiple components)"
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take several seconds)"
    )


# ==================== Environment Fixtures ====================

@pytest.fixture(scope="function", autouse=True)
def isolate_environment(monkeypatch):
    """Isolate each test by preventing environment variable pollution.

    This fixture automatically applies to all tests and ensures that
    environment variables don't leak between tests.
    """
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)



# ==================== Store Fixtures ====================

@pytest.fixture
def clock() -> FakeClock:
    """Controllable wall clock shared by the fake store and the engines."""
    return FakeClock()


@pytest.fixture
def store(clock) -> FakeStore:
    """Empty in-memory store driven by ``clock``."""
    return FakeStore(clock)


@pytest.fixture
def global_store(store, monkeypatch) -> FakeStore:
    """Route get_store() to the in-memory store for module-level helpers."""
    monkeypatch.setattr(redis_client, "get_store", lambda: store)
    for module in (
        "priceguide.cache.coalescing",
        "priceguide.cache.swr",
        "priceguide.cache.bulk",
        "priceguide.cache.decorator",
    ):
        monkeypatch.setattr(f"{module}.get_store", lambda: store)
    return store

