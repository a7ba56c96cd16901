from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from leadhook.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False, validation_alias="DEBUG")

    # Server
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")
    api_prefix: str = Field(default="/api", validation_alias="API_PREFIX")

    # Lead store
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")
    database_pool_size: int = Field(default=10, validation_alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=5, validation_alias="DATABASE_MAX_OVERFLOW")
    database_pool_timeout: int = Field(default=30, validation_alias="DATABASE_POOL_TIMEOUT")
    store_timeout_seconds: float = Field(default=10.0, validation_alias="STORE_TIMEOUT_SECONDS")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    redis_max_connections: int = Field(default=20, validation_alias="REDIS_MAX_CONNECTIONS")
    redis_socket_timeout: int = Field(default=5, validation_alias="REDIS_SOCKET_TIMEOUT")

    # Webhook security
    webhook_secret: Optional[str] = Field(default=None, validation_alias="WEBHOOK_SECRET")
    allowed_origins: str = Field(default="", validation_alias="ALLOWED_ORIGINS")
    api_keys: str = Field(default="", validation_alias="API_KEYS")
    timestamp_tolerance_ms: int = Field(default=300_000, validation_alias="TIMESTAMP_TOLERANCE_MS")

    # Rate limiting
    rate_limit_backend: str = Field(default="memory", validation_alias="RATE_LIMIT_BACKEND")
    rate_limit_requests: int = Field(default=20, validation_alias="RATE_LIMIT_REQUESTS")
    rate_limit_window_ms: int = Field(default=60_000, validation_alias="RATE_LIMIT_WINDOW_MS")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # Monitoring
    sentry_dsn: Optional[str] = Field(default=None, validation_alias="SENTRY_DSN")

    @field_validator("environment")
    def validate_environment(cls, v):
        valid_envs = ["development", "testing", "staging", "production"]
        if v not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}")
        return v

    @field_validator("log_level")
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v):
        valid_formats = ["json", "console"]
        if v not in valid_formats:
            raise ValueError(f"log_format must be one of {valid_formats}")
        return v

    @field_validator("rate_limit_backend")
    def validate_rate_limit_backend(cls, v):
        valid_backends = ["memory", "redis"]
        if v not in valid_backends:
            raise ValueError(f"rate_limit_backend must be one of {valid_backends}")
        return v

    @field_validator("rate_limit_requests", "rate_limit_window_ms", "timestamp_tolerance_ms")
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        return self.environment == "testing"

    def origins(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def keys(self) -> frozenset[str]:
        return frozenset(key.strip() for key in self.api_keys.split(",") if key.strip())

    def missing_required(self) -> List[str]:
        """Names of required environment variables that are unset or empty."""
        missing = []
        if not self.webhook_secret:
            missing.append("WEBHOOK_SECRET")
        if not self.origins():
            missing.append("ALLOWED_ORIGINS")
        if not self.keys():
            missing.append("API_KEYS")
        if not self.database_url:
            missing.append("DATABASE_URL")
        return missing

    def ensure_ingestion_ready(self, require_store: bool = True) -> None:
        missing = self.missing_required()
        if not require_store and "DATABASE_URL" in missing:
            missing.remove("DATABASE_URL")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )


settings = Settings()
