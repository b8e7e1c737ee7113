"""
crawlcache Application Configuration

Configuration management with environment variable support.
Values come from the process environment first, then an optional .env file.
"""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation and defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )

    # Redis configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379", description="Redis connection URL"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=20, ge=1, le=500, description="Upper bound on pooled connections"
    )
    REDIS_MAX_IDLE: int = Field(
        default=5, ge=0, le=500, description="Idle connections kept open in the pool"
    )
    REDIS_IDLE_TIMEOUT: int = Field(
        default=300,
        ge=1,
        le=86400,
        description="Seconds an idle connection may sit before it is recycled",
    )
    REDIS_POOL_TIMEOUT: float = Field(
        default=5.0, gt=0, le=60, description="Seconds to wait for a free connection"
    )
    REDIS_SOCKET_TIMEOUT: float = Field(
        default=5.0, gt=0, le=60, description="Per-command socket timeout in seconds"
    )
    REDIS_CONNECT_TIMEOUT: float = Field(
        default=5.0, gt=0, le=60, description="Connection timeout in seconds"
    )

    # Cache layout
    CACHE_NAMESPACE: str = Field(
        default="crawled", min_length=1, description="Logical table for fetched bodies"
    )
    CACHE_TTL_SECONDS: int = Field(
        default=10800, ge=1, le=86400 * 365, description="Expiry of cached bodies"
    )

    # Origin fetching
    FETCH_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0, le=600, description="Timeout for origin requests"
    )

    # API configuration
    API_HOST: str = Field(default="0.0.0.0", description="API server host")
    API_PORT: int = Field(default=9889, ge=1, le=65535, description="API server port")

    # OpenTelemetry configuration
    OTEL_ENABLED: bool = Field(default=True, description="Enable tracing export")
    OTEL_EXPORTER_OTLP_ENDPOINT: str = Field(
        default="http://localhost:4317", description="OpenTelemetry OTLP endpoint"
    )
    OTEL_SERVICE_NAME: str = Field(
        default="crawlcache", description="OpenTelemetry service name"
    )
    OTEL_SERVICE_VERSION: str = Field(
        default="0.1.0", description="OpenTelemetry service version"
    )
    TELEMETRY_PROJECT_ID: str = Field(
        default="census-demos", description="Observability backend project identifier"
    )
    TELEMETRY_METRIC_PREFIX: str = Field(
        default="cmstore", description="Prefix for exported metric names"
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Log renderer: json or console")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("REDIS_URL")
    @classmethod
    def validate_redis_url(cls, v):
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("REDIS_URL must be a redis://, rediss:// or unix:// URL")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v):
        if v.lower() not in ("json", "console"):
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return v.lower()

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> "Settings":
        if self.REDIS_MAX_IDLE > self.REDIS_MAX_CONNECTIONS:
            raise ValueError("REDIS_MAX_IDLE cannot exceed REDIS_MAX_CONNECTIONS")
        return self

    @property
    def resource_attributes(self) -> dict:
        """Attributes attached to every exported span."""
        return {
            "service.name": self.OTEL_SERVICE_NAME,
            "service.version": self.OTEL_SERVICE_VERSION,
            "deployment.environment": self.ENVIRONMENT,
            "telemetry.project_id": self.TELEMETRY_PROJECT_ID,
            "telemetry.metric_prefix": self.TELEMETRY_METRIC_PREFIX,
        }


@lru_cache()
def get_settings(env_file: Optional[str] = None) -> Settings:
    """Get cached settings instance."""
    if env_file is not None:
        return Settings(_env_file=env_file)
    return Settings()
