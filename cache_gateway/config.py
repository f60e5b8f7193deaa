"""Gateway configuration using Pydantic Settings.

Values come from the process environment, with an optional ``.env`` file
in the working directory. Environment variable names match the field
names (case-insensitive); the Redis host also accepts REDIS_HOSTNAME.
"""

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Gateway settings."""

    # Key-value store
    redis_host: str = Field(
        "localhost",
        validation_alias=AliasChoices("redis_host", "redis_hostname"),
        description="Redis host",
    )
    redis_port: int = Field(6379, description="Redis port")
    redis_password: Optional[str] = Field(None, description="Redis password")
    redis_db: int = Field(0, ge=0, description="Redis database index")
    redis_max_connections: int = Field(20, ge=1, description="Connection pool size")
    redis_socket_timeout: float = Field(
        5.0,
        gt=0,
        description="Socket and connect timeout for Redis, in seconds",
    )

    # Upstream
    api_url: str = Field(
        "https://rickandmortyapi.com/api/",
        description="Base URL of the upstream data API",
    )
    upstream_timeout_seconds: float = Field(
        30.0,
        gt=0,
        description="Upstream request timeout in seconds",
    )

    # HTTP server
    host: str = Field("0.0.0.0", description="Listen address")
    port: int = Field(3000, description="Listen port")

    # Rate limiting
    rate_limit_requests: int = Field(
        20,
        ge=1,
        description="Maximum number of requests allowed per window (per client)",
    )
    rate_limit_window_seconds: int = Field(
        3600,
        ge=1,
        description="Rate limit window size in seconds",
    )
    rate_limit_status_code: int = Field(
        429,
        description="HTTP status returned to rate-limited clients",
    )
    trust_forwarded_for: bool = Field(
        True,
        description="Derive client identity from X-Forwarded-For (requires a trusted proxy)",
    )

    # Caching
    cache_ttl_seconds: int = Field(10, ge=1, description="Cache entry TTL in seconds")
    cache_fail_open: bool = Field(
        True,
        description="Treat cache read failures as misses instead of returning 500",
    )
    key_namespace: str = Field(
        "",
        description="Optional prefix for every store key (per deployment)",
    )

    # Logging
    log_level: str = Field("INFO", description="Log level")
    environment: str = Field(
        "production",
        description="Deployment environment (development enables console logs)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("rate_limit_status_code")
    @classmethod
    def validate_rate_limit_status_code(cls, v: int) -> int:
        """Only 429 and 503 are meaningful for a throttled request."""
        if v not in (429, 503):
            raise ValueError("rate_limit_status_code must be 429 or 503")
        return v
