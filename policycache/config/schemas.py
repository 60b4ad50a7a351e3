"""
policycache — Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
All configuration is defined here and validated once at startup.

Notes:
- All config comes from environment variables (optionally via a .env file)
- Missing Redis settings are not an error: startup falls back to the
  in-process backend with a warning
"""

from enum import Enum
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class CacheBackend(str, Enum):
    """Supported cache backends."""

    MEMORY = "memory"
    REDIS = "redis"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    TEXT = "text"
    JSON = "json"


class CacheConfig(BaseModel):
    """Cache configuration."""

    backend: CacheBackend = Field(default=CacheBackend.MEMORY, description="Cache backend to use")
    ttl_seconds: int = Field(default=3600, ge=0, description="Default TTL in seconds (0 = no expiry)")
    namespace: str = Field(default="", description="Optional prefix applied to stored keys")
    sweep_interval_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Interval of the in-process expiry sweep (0 = disabled)",
    )

    # Redis-specific settings (only used when backend=redis)
    redis_url: str | None = Field(default=None, description="Redis connection URL")
    redis_host: str | None = Field(default=None, description="Redis host (used when redis_url is unset)")
    redis_port: int = Field(default=6379, ge=1, le=65535, description="Redis port")
    redis_password: str | None = Field(default=None, description="Redis password")
    redis_db: int = Field(default=0, ge=0, description="Redis logical database")
    redis_max_connections: int = Field(default=10, ge=1, description="Redis connection pool size")
    redis_socket_timeout: int = Field(default=5, ge=1, description="Redis socket timeout in seconds")

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Strip whitespace and trailing separators from the namespace."""
        return v.strip().rstrip(":")

    @property
    def redis_configured(self) -> bool:
        """True if enough settings are present to attempt a Redis connection."""
        return bool(self.redis_url or self.redis_host)

    def redis_connection_url(self) -> str | None:
        """
        Return the Redis URL to connect with.

        Prefers redis_url; otherwise assembles one from host/port/password/db.
        Returns None when Redis is not configured at all.
        """
        if self.redis_url:
            return self.redis_url
        if not self.redis_host:
            return None
        auth = f":{quote(self.redis_password, safe='')}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"


class ObservabilityConfig(BaseModel):
    """Logging and metrics configuration."""

    enable_metrics: bool = Field(default=True, description="Enable in-process metric counters")
    enable_tracing: bool = Field(default=False, description="Enable span tracing log records")
    log_format: LogFormat = Field(default=LogFormat.TEXT, description="Log output format")


class PolicyCacheConfig(BaseModel):
    """Root configuration for policycache."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")

    cache: CacheConfig = Field(default_factory=CacheConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
