"""Application settings loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from routecache.core.defaults import (
    DEFAULT_CIRCUIT_BREAKER_THRESHOLD,
    DEFAULT_CIRCUIT_BREAKER_TIMEOUT,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_KEY_PREFIX,
    DEFAULT_STORE_TIMEOUT_SECONDS,
    DEFAULT_TTL_MINUTES,
)


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Route cache store
    redis_url: str = Field(default="redis://localhost:6379", description="Redis URL")
    route_cache_enabled: bool = Field(
        default=True, description="Enable cached routes (False = always Darkmode)"
    )
    route_cache_ttl_minutes: int = Field(
        default=DEFAULT_TTL_MINUTES,
        description="Minutes before a cached route expires in the store",
        ge=1,
        le=1440,
    )
    route_cache_key_prefix: str = Field(
        default=DEFAULT_KEY_PREFIX, description="Namespace for cached route keys"
    )
    redis_timeout: float = Field(
        default=DEFAULT_STORE_TIMEOUT_SECONDS,
        description="Store operation timeout seconds",
        gt=0.0,
        le=30.0,
    )
    redis_circuit_breaker_threshold: int = Field(
        default=DEFAULT_CIRCUIT_BREAKER_THRESHOLD,
        description="Failures before opening circuit",
        ge=1,
        le=100,
    )
    redis_circuit_breaker_timeout: int = Field(
        default=DEFAULT_CIRCUIT_BREAKER_TIMEOUT,
        description="Circuit breaker timeout seconds (5 min)",
        ge=1,
        le=3600,
    )

    # Strategy table
    strategy_config_path: str = Field(
        default=DEFAULT_CONFIG_FILENAME,
        description="YAML file holding the strategies and tracked pairs",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str | None = Field(
        default=None, description="Log format (json, console); default by environment"
    )
    environment: str = Field(
        default="development", description="Environment (development, production)"
    )

    # OpenTelemetry Configuration
    otel_enabled: bool = Field(
        default=False, description="Enable OpenTelemetry instrumentation"
    )
    otel_service_name: str = Field(
        default="routecache", description="Service name for telemetry"
    )
    otel_exporter_otlp_endpoint: str = Field(
        default="http://localhost:4317", description="OTLP gRPC endpoint"
    )
    otel_exporter_otlp_headers: str = Field(
        default="", description="OTLP headers (e.g., 'api-key=xxx')"
    )
    otel_traces_enabled: bool = Field(
        default=True, description="Enable trace collection"
    )
    otel_metrics_enabled: bool = Field(
        default=True, description="Enable metrics collection"
    )
    otel_metric_export_interval_ms: int = Field(
        default=60000, description="Metric export interval in milliseconds", ge=1000
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"


settings = Settings()
