"""
policycache — Configuration Loader

Loads and validates configuration from environment variables and .env files.
Provides a singleton configuration instance for the runtime.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import PolicyCacheConfig

logger = logging.getLogger(__name__)

_config_instance: PolicyCacheConfig | None = None


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> PolicyCacheConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in the working directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated PolicyCacheConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    if env_file:
        env_path = Path(env_file)
    else:
        env_path = Path.cwd() / ".env"

    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        try:
            load_dotenv(env_path, override=True)
        except Exception as e:
            logger.error(
                f"Failed to load .env file from {env_path}: {e}",
                extra={"path": str(env_path), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to load environment file: {e}",
                details={"path": str(env_path), "error": str(e)},
            ) from e
    else:
        logger.debug("No .env file found, using environment variables only")

    # Auto-detect cache backend: Redis if any connection setting is present
    redis_url = os.getenv("REDIS_URL") or None
    redis_host = os.getenv("REDIS_HOST") or None
    cache_backend = "redis" if (redis_url or redis_host) else "memory"

    config_dict = {
        "environment": os.getenv("ENVIRONMENT", "development"),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "cache": {
            "backend": os.getenv("CACHE_BACKEND", cache_backend).lower(),
            "ttl_seconds": int(os.getenv("CACHE_TTL_SECONDS", "3600")),
            "namespace": os.getenv("CACHE_NAMESPACE", ""),
            "sweep_interval_seconds": float(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "60")),
            "redis_url": redis_url,
            "redis_host": redis_host,
            "redis_port": int(os.getenv("REDIS_PORT", "6379")),
            "redis_password": os.getenv("REDIS_PASSWORD") or None,
            "redis_db": int(os.getenv("REDIS_DB", "0")),
            "redis_max_connections": int(os.getenv("REDIS_MAX_CONNECTIONS", "10")),
            "redis_socket_timeout": int(os.getenv("REDIS_SOCKET_TIMEOUT", "5")),
        },
        "observability": {
            "enable_metrics": _env_bool("ENABLE_METRICS", "true"),
            "enable_tracing": _env_bool("ENABLE_TRACING", "false"),
            "log_format": os.getenv("LOG_FORMAT", "text").lower(),
        },
    }

    try:
        _config_instance = PolicyCacheConfig(**config_dict)  # type: ignore[arg-type]
        logger.info(
            f"Configuration loaded successfully (environment: {_config_instance.environment})",
            extra={"environment": _config_instance.environment, "cache_backend": _config_instance.cache.backend},
        )
        return _config_instance
    except ValidationError as e:
        logger.error(
            f"Configuration validation failed: {e}",
            extra={"validation_errors": e.errors(), "config_dict_keys": list(config_dict.keys())},
            exc_info=True,
        )
        raise ConfigurationError(
            "Configuration validation failed. Check your environment variables and configuration.",
            details={"validation_errors": e.errors()},
        ) from e


def get_config() -> PolicyCacheConfig:
    """
    Get the current configuration instance, loading it on first access.

    Returns:
        Current PolicyCacheConfig instance
    """
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> PolicyCacheConfig:
    """
    Force reload configuration.

    Args:
        env_file: Optional path to .env file

    Returns:
        Reloaded PolicyCacheConfig instance
    """
    return load_config(env_file=env_file, reload=True)
