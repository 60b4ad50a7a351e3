"""
policycache — Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
Redis-backed tests run against fakeredis, so no server is required.
"""

import logging
import os
from collections.abc import AsyncGenerator, Generator
from typing import Any

import fakeredis
import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"
for _name in ("REDIS_URL", "REDIS_HOST", "CACHE_BACKEND", "CACHE_NAMESPACE"):
    os.environ.pop(_name, None)


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def fake_redis() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """Isolated in-memory Redis server with a decoding async client."""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def mock_env_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for memory cache backend."""
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "3600")
    monkeypatch.setenv("CACHE_NAMESPACE", "test")


@pytest.fixture
def sample_cache_data() -> dict[str, Any]:
    """Sample data for cache testing."""
    return {
        "simple_string": "hello",
        "simple_int": 42,
        "simple_float": 3.14,
        "simple_bool": True,
        "complex_dict": {
            "nested": {
                "key": "value",
                "number": 123,
                "list": [1, 2, 3],
            }
        },
        "complex_list": [
            {"id": 1, "name": "Alice"},
            {"id": 2, "name": "Bob"},
        ],
    }


@pytest.fixture(autouse=True)
def reset_global_state() -> Generator[None, None, None]:
    """Reset process-wide singletons after each test to prevent state leakage."""
    yield

    from policycache import lifecycle
    from policycache.cache.factory import reset_cache_factory
    from policycache.config import reload_config
    from policycache.observability import initialize_observability
    from policycache.registry import reset_registry

    reset_cache_factory()
    reset_registry()
    initialize_observability()
    lifecycle._facade = None
    lifecycle._interceptor = None
    reload_config()

    # init_cache() installs its own handler; restore propagation for caplog
    package_logger = logging.getLogger("policycache")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
