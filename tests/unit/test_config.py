"""
policycache — Configuration Tests
"""

from pathlib import Path

import pytest

from policycache.config import CacheBackend, CacheConfig, LogFormat, load_config, reload_config
from policycache.errors import ConfigurationError


class TestLoadConfig:
    """Environment-driven configuration."""

    def test_defaults_select_memory(self) -> None:
        """No Redis settings means the memory backend."""
        config = reload_config()

        assert config.environment == "test"
        assert config.cache.backend == CacheBackend.MEMORY
        assert config.cache.ttl_seconds == 3600
        assert config.cache.namespace == ""
        assert config.cache.redis_configured is False

    def test_redis_url_selects_redis(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """REDIS_URL switches to Redis."""
        monkeypatch.setenv("REDIS_URL", "redis://cache.internal:6379/2")

        config = reload_config()

        assert config.cache.backend == CacheBackend.REDIS
        assert config.cache.redis_connection_url() == "redis://cache.internal:6379/2"

    def test_redis_host_builds_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """REDIS_HOST settings are assembled into a URL."""
        monkeypatch.setenv("REDIS_HOST", "redis.local")
        monkeypatch.setenv("REDIS_PORT", "6380")
        monkeypatch.setenv("REDIS_PASSWORD", "p@ss")
        monkeypatch.setenv("REDIS_DB", "3")

        config = reload_config()

        assert config.cache.backend == CacheBackend.REDIS
        assert config.cache.redis_connection_url() == "redis://:p%40ss@redis.local:6380/3"

    def test_explicit_backend_overrides_detection(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """CACHE_BACKEND wins over auto-detection."""
        monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
        monkeypatch.setenv("CACHE_BACKEND", "memory")

        assert reload_config().cache.backend == CacheBackend.MEMORY

    def test_cache_and_observability_settings(self, mock_env_memory: None, monkeypatch: pytest.MonkeyPatch) -> None:
        """Env vars map onto the config models."""
        monkeypatch.setenv("CACHE_SWEEP_INTERVAL_SECONDS", "0")
        monkeypatch.setenv("LOG_FORMAT", "JSON")
        monkeypatch.setenv("ENABLE_METRICS", "false")

        config = reload_config()

        assert config.cache.namespace == "test"
        assert config.cache.sweep_interval_seconds == 0
        assert config.observability.log_format == LogFormat.JSON
        assert config.observability.enable_metrics is False

    def test_invalid_values_raise_configuration_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Validation errors surface as ConfigurationError."""
        monkeypatch.setenv("CACHE_BACKEND", "memcached")

        with pytest.raises(ConfigurationError):
            reload_config()

    def test_env_file_is_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """A .env file overrides the process environment."""
        env_file = tmp_path / ".env"
        env_file.write_text("CACHE_TTL_SECONDS=120\n")
        monkeypatch.setenv("CACHE_TTL_SECONDS", "3600")

        config = load_config(env_file=str(env_file), reload=True)

        assert config.cache.ttl_seconds == 120

    def test_singleton(self) -> None:
        """load_config() caches its result."""
        assert load_config() is load_config()


class TestCacheConfig:
    def test_namespace_is_normalized(self) -> None:
        """Whitespace and colons are stripped from the namespace."""
        assert CacheConfig(namespace=" app: ").namespace == "app"

    def test_unconfigured_redis_has_no_url(self) -> None:
        """No URL is derived without Redis settings."""
        config = CacheConfig(backend=CacheBackend.REDIS)
        assert config.redis_configured is False
        assert config.redis_connection_url() is None
