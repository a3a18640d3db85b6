#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
caching and freshness core. All configuration is centralized here to ensure
consistency across the cache, warmer and alerting modules.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- IDE autocomplete for all settings
- Easy testing with override mechanisms

Author: System Architect
Date: 2025-12-05
"""

from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ethosview.core.exceptions.base import ConfigurationError


class RedisSettings(BaseSettings):
    """
    Redis configuration for the key/value cache store.

    STAGE-0.1: Redis connection configuration

    REDIS_URL, when present, wins over the discrete host/port/password fields
    (hosted Redis providers hand out a single URL).
    """

    REDIS_URL: str | None = Field(default=None, description="Full Redis URL (overrides host/port)")
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")

    REDIS_MAX_CONNECTIONS: int = Field(default=10, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class DatabaseSettings(BaseSettings):
    """
    PostgreSQL configuration for the backing relational store.

    STAGE-0.2: Database connection configuration

    DATABASE_URL, when present, wins over the discrete DB_* fields.
    """

    DATABASE_URL: str | None = Field(default=None, description="Full database URL (overrides DB_*)")
    DB_HOST: str = Field(default="localhost", description="Database host")
    DB_PORT: int = Field(default=5432, description="Database port")
    DB_USER: str = Field(default="postgres", description="Database user")
    DB_PASSWORD: str | None = Field(default=None, description="Database password")
    DB_NAME: str = Field(default="ethosview", description="Database name")
    DB_SSL_MODE: Literal["disable", "prefer", "require", "verify-ca", "verify-full"] = Field(
        default="disable", description="SSL mode passed to the driver"
    )
    DB_POOL_SIZE: int = Field(default=25, description="Pooled connections kept open")
    DB_MAX_OVERFLOW: int = Field(default=5, description="Extra connections allowed under burst")
    DB_POOL_RECYCLE: int = Field(default=300, description="Recycle connections after N seconds")
    DB_COMMAND_TIMEOUT: float = Field(default=10.0, description="Per-statement timeout in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Advanced cache and warmer configuration.

    STAGE-2: Cache namespace and warming cadence
    """

    CACHE_PREFIX: str = Field(default="ethosview", description="Namespace prefix for cache keys")
    CACHE_WARMING_ENABLED: bool = Field(default=True, description="Run the background cache warmer")
    CACHE_WARMING_INTERVAL: int = Field(default=1800, description="Warming interval (30 minutes)")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class MonitoringSettings(BaseSettings):
    """
    Alert manager configuration and alert thresholds.

    STAGE-M: Monitoring thresholds

    Thresholds are read once when the alert manager is built; changing the
    environment afterwards has no effect on a running manager.
    """

    MONITORING_ENABLED: bool = Field(default=True, description="Run the background alert monitor")
    MONITORING_INTERVAL: int = Field(default=60, description="Monitoring tick interval (1 minute)")
    MONITORING_DISK_PATH: str = Field(default="/", description="Filesystem path sampled for disk usage")

    ALERT_DB_RESPONSE_TIME_MS: float = Field(default=500.0, description="Max database ping latency (ms)")
    ALERT_DB_MAX_CONNECTIONS: float = Field(default=80.0, description="Max active database connections")
    ALERT_DB_MAX_SLOW_QUERIES: int = Field(default=5, description="Max concurrently slow queries")
    ALERT_CACHE_MIN_HIT_RATE: float = Field(default=80.0, description="Min cache hit rate (%)")
    ALERT_MAX_MEMORY_PERCENT: float = Field(default=85.0, description="Max memory usage (%)")
    ALERT_MAX_ERROR_RATE: float = Field(default=5.0, description="Max error rate (%)")
    ALERT_MAX_REQUESTS_PER_SECOND: float = Field(default=1000.0, description="Max request rate")
    ALERT_MIN_DISK_FREE_PERCENT: float = Field(default=15.0, description="Min free disk space (%)")
    ALERT_MAX_CONCURRENCY: int = Field(default=1000, description="Max concurrent asyncio tasks")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="EthosView Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8080, description="API port")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for all API routes")

    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from ethosview.core.config.settings import get_settings

        settings = get_settings()
        redis_host = settings.redis.REDIS_HOST
        interval = settings.cache.CACHE_WARMING_INTERVAL
    """

    # Redis settings
    REDIS_URL: str | None = Field(default=None, description="Full Redis URL (overrides host/port)")
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=10, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    # Database settings
    DATABASE_URL: str | None = Field(default=None, description="Full database URL (overrides DB_*)")
    DB_HOST: str = Field(default="localhost", description="Database host")
    DB_PORT: int = Field(default=5432, description="Database port")
    DB_USER: str = Field(default="postgres", description="Database user")
    DB_PASSWORD: str | None = Field(default=None, description="Database password")
    DB_NAME: str = Field(default="ethosview", description="Database name")
    DB_SSL_MODE: Literal["disable", "prefer", "require", "verify-ca", "verify-full"] = Field(
        default="disable", description="SSL mode passed to the driver"
    )
    DB_POOL_SIZE: int = Field(default=25, description="Pooled connections kept open")
    DB_MAX_OVERFLOW: int = Field(default=5, description="Extra connections allowed under burst")
    DB_POOL_RECYCLE: int = Field(default=300, description="Recycle connections after N seconds")
    DB_COMMAND_TIMEOUT: float = Field(default=10.0, description="Per-statement timeout in seconds")

    # Cache settings
    CACHE_PREFIX: str = Field(default="ethosview", description="Namespace prefix for cache keys")
    CACHE_WARMING_ENABLED: bool = Field(default=True, description="Run the background cache warmer")
    CACHE_WARMING_INTERVAL: int = Field(default=1800, description="Warming interval (30 minutes)")

    # Monitoring settings
    MONITORING_ENABLED: bool = Field(default=True, description="Run the background alert monitor")
    MONITORING_INTERVAL: int = Field(default=60, description="Monitoring tick interval (1 minute)")
    MONITORING_DISK_PATH: str = Field(default="/", description="Filesystem path sampled for disk usage")
    ALERT_DB_RESPONSE_TIME_MS: float = Field(default=500.0, description="Max database ping latency (ms)")
    ALERT_DB_MAX_CONNECTIONS: float = Field(default=80.0, description="Max active database connections")
    ALERT_DB_MAX_SLOW_QUERIES: int = Field(default=5, description="Max concurrently slow queries")
    ALERT_CACHE_MIN_HIT_RATE: float = Field(default=80.0, description="Min cache hit rate (%)")
    ALERT_MAX_MEMORY_PERCENT: float = Field(default=85.0, description="Max memory usage (%)")
    ALERT_MAX_ERROR_RATE: float = Field(default=5.0, description="Max error rate (%)")
    ALERT_MAX_REQUESTS_PER_SECOND: float = Field(default=1000.0, description="Max request rate")
    ALERT_MIN_DISK_FREE_PERCENT: float = Field(default=15.0, description="Min free disk space (%)")
    ALERT_MAX_CONCURRENCY: int = Field(default=1000, description="Max concurrent asyncio tasks")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="EthosView Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8080, description="API port")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for all API routes")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    # Nested configuration views
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_URL=self.REDIS_URL,
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
        )

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return DatabaseSettings(
            DATABASE_URL=self.DATABASE_URL,
            DB_HOST=self.DB_HOST,
            DB_PORT=self.DB_PORT,
            DB_USER=self.DB_USER,
            DB_PASSWORD=self.DB_PASSWORD,
            DB_NAME=self.DB_NAME,
            DB_SSL_MODE=self.DB_SSL_MODE,
            DB_POOL_SIZE=self.DB_POOL_SIZE,
            DB_MAX_OVERFLOW=self.DB_MAX_OVERFLOW,
            DB_POOL_RECYCLE=self.DB_POOL_RECYCLE,
            DB_COMMAND_TIMEOUT=self.DB_COMMAND_TIMEOUT,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_PREFIX=self.CACHE_PREFIX,
            CACHE_WARMING_ENABLED=self.CACHE_WARMING_ENABLED,
            CACHE_WARMING_INTERVAL=self.CACHE_WARMING_INTERVAL,
        )

    @property
    def monitoring(self) -> MonitoringSettings:
        """Get monitoring settings."""
        return MonitoringSettings(
            MONITORING_ENABLED=self.MONITORING_ENABLED,
            MONITORING_INTERVAL=self.MONITORING_INTERVAL,
            MONITORING_DISK_PATH=self.MONITORING_DISK_PATH,
            ALERT_DB_RESPONSE_TIME_MS=self.ALERT_DB_RESPONSE_TIME_MS,
            ALERT_DB_MAX_CONNECTIONS=self.ALERT_DB_MAX_CONNECTIONS,
            ALERT_DB_MAX_SLOW_QUERIES=self.ALERT_DB_MAX_SLOW_QUERIES,
            ALERT_CACHE_MIN_HIT_RATE=self.ALERT_CACHE_MIN_HIT_RATE,
            ALERT_MAX_MEMORY_PERCENT=self.ALERT_MAX_MEMORY_PERCENT,
            ALERT_MAX_ERROR_RATE=self.ALERT_MAX_ERROR_RATE,
            ALERT_MAX_REQUESTS_PER_SECOND=self.ALERT_MAX_REQUESTS_PER_SECOND,
            ALERT_MIN_DISK_FREE_PERCENT=self.ALERT_MIN_DISK_FREE_PERCENT,
            ALERT_MAX_CONCURRENCY=self.ALERT_MAX_CONCURRENCY,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            API_BASE_PATH=self.API_BASE_PATH,
            CORS_ORIGINS=self.CORS_ORIGINS,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def _load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in e.errors()})
        raise ConfigurationError.from_exception(
            e,
            message=f"Invalid configuration: {', '.join(fields)}",
            invalid_fields=fields,
        ).with_suggestion("Fix the listed environment variables or .env entries") from e


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance

    Raises:
        ConfigurationError: If the environment does not validate
    """
    global _settings

    if _settings is None:
        _settings = _load_settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = _load_settings()
    return _settings
