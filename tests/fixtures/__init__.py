"""Shared test fixtures for price guide tests.

This package provides:
- FakeStore: in-memory async key-value store with expiry
- FakeClock: controllable wall clock shared by the store and the engines
- CountingFetcher: instrumented upstream fetch
"""

__all__ = [
    "fake_store",
]
