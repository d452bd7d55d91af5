"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for complex config structures
- **Mode-dependent defaults**: Production toggles cookie security, static
  serving, HSTS and the cross-origin allow-list
- **Caching**: Configuration is cached for performance

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
4. Environment-based defaults (production vs development)
"""

import os
from functools import lru_cache
from typing import Literal, Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from contendo.core.constants import (
    DEFAULT_DRAIN_TIMEOUT_SECONDS,
    DEFAULT_MAX_BODY_BYTES,
    DEFAULT_RATE_LIMIT_MAX_REQUESTS,
    DEFAULT_RATE_LIMIT_MESSAGE,
    DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
    DEFAULT_SESSION_COOKIE_NAME,
    DEFAULT_SESSION_MAX_AGE_SECONDS,
    DEFAULT_SESSION_SECRET,
)

type FatalErrorPolicy = Literal["shutdown", "log"]

DEVELOPMENT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:5174",
]


class LogConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )
    excluded_paths: list[str] = Field(
        default_factory=lambda: ["/health"],
        description="Paths to exclude from request logging",
    )
    excluded_path_prefixes: list[str] = Field(
        default_factory=lambda: ["/css", "/js", "/images", "/assets"],
        description="Static asset path prefixes to exclude from request logging",
    )
    slow_request_threshold_ms: int = Field(
        default=1000,
        gt=0,
        description="Threshold for slow request warnings (milliseconds)",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "api_key",
            "authorization",
            "cookie",
        ],
        description="Field names to redact",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for daily rotated log files. No file output if unset.",
    )
    log_rotation: str = Field(
        default="00:00",
        description="When log files rotate (loguru rotation spec)",
    )
    app_log_retention_days: int = Field(
        default=14,
        gt=0,
        description="Days to keep rotated application log files",
    )
    error_log_retention_days: int = Field(
        default=30,
        gt=0,
        description="Days to keep rotated error log files",
    )


class ObservabilityConfig(BaseModel):
    """OpenTelemetry tracing configuration."""

    enable_tracing: bool = Field(
        default=True,
        description="Enable OpenTelemetry tracing",
    )
    exporter_type: Literal["console", "otlp", "none"] = Field(
        default="console",
        description="Trace exporter type. Console in development, OTLP elsewhere.",
    )
    exporter_endpoint: str | None = Field(
        default=None,
        description="OTLP exporter endpoint",
    )
    trace_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Trace sampling rate (0.0 to 1.0)",
    )

    @field_validator("exporter_endpoint", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v


class RateLimitConfig(BaseModel):
    """Fixed-window rate limiting configuration."""

    window_seconds: float = Field(
        default=DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
        gt=0,
        description="Length of one counting window in seconds",
    )
    max_requests: int = Field(
        default=DEFAULT_RATE_LIMIT_MAX_REQUESTS,
        ge=1,
        description="Requests allowed per client per window",
    )
    message: str = Field(
        default=DEFAULT_RATE_LIMIT_MESSAGE,
        description="Body of the rejection response",
    )
    path_prefix: str = Field(
        default="/api",
        description="Only paths at or below this prefix are limited",
    )


class SessionConfig(BaseModel):
    """Session cookie configuration."""

    cookie_name: str = Field(
        default=DEFAULT_SESSION_COOKIE_NAME,
        description="Name of the session cookie",
    )
    max_age_seconds: int = Field(
        default=DEFAULT_SESSION_MAX_AGE_SECONDS,
        gt=0,
        description="Fixed session lifetime, counted from creation",
    )
    same_site: Literal["lax", "strict", "none"] = Field(
        default="lax",
        description="SameSite attribute of the session cookie",
    )


class ShutdownConfig(BaseModel):
    """Process lifecycle configuration."""

    drain_timeout_seconds: float = Field(
        default=DEFAULT_DRAIN_TIMEOUT_SECONDS,
        gt=0,
        le=300,
        description="Maximum wait for in-flight requests before closing them",
    )
    uncaught_exception_policy: FatalErrorPolicy = Field(
        default="shutdown",
        description="Reaction to exceptions escaping threads or the server task",
    )
    unhandled_async_error_policy: FatalErrorPolicy = Field(
        default="shutdown",
        description="Reaction to errors reported by the event loop exception handler",
    )


class ClientAppConfig(BaseModel):
    """Client application serving configuration."""

    dist_dir: str = Field(
        default="client/dist",
        description="Directory holding the pre-built client bundle",
    )
    index_file: str = Field(
        default="index.html",
        description="Entry document served for client-side routes",
    )
    dev_server_url: str = Field(
        default="http://localhost:5173",
        description="URL of the separately running client dev server",
    )


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
    )

    # Application settings
    app_name: str = Field(
        default="Contendo Business Management Platform API",
        description="Application name",
    )
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # Server settings
    api_host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=3000, ge=0, le=65535, description="Bind port")
    public_base_url: str = Field(
        default="http://localhost:3000",
        description="Externally-facing base URL of this server",
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Origin of the client application in production",
    )
    cors_allowed_origins: list[str] | None = Field(
        default=None,
        description="Origins allowed to issue credentialed requests",
    )
    session_secret: SecretStr = Field(
        default=SecretStr(DEFAULT_SESSION_SECRET),
        description="Secret used to sign session cookies",
    )
    max_body_bytes: int = Field(
        default=DEFAULT_MAX_BODY_BYTES,
        gt=0,
        description="Largest accepted request body in bytes",
    )
    docs_url: str | None = Field(default="/docs", description="Swagger UI URL")
    openapi_url: str | None = Field(
        default="/openapi.json", description="OpenAPI schema URL"
    )

    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )
    observability_config: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig, description="Observability configuration"
    )
    rate_limit_config: RateLimitConfig = Field(
        default_factory=RateLimitConfig, description="Rate limiting configuration"
    )
    session_config: SessionConfig = Field(
        default_factory=SessionConfig, description="Session configuration"
    )
    shutdown_config: ShutdownConfig = Field(
        default_factory=ShutdownConfig, description="Lifecycle configuration"
    )
    client_config: ClientAppConfig = Field(
        default_factory=ClientAppConfig, description="Client application configuration"
    )

    @property
    def is_production(self) -> bool:
        """Whether the server runs in production mode."""
        return self.environment == "production"

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._detect_formatter()

        if self.cors_allowed_origins is None:
            self.cors_allowed_origins = self._default_cors_origins()

        if self.observability_config.exporter_type == "console":
            self.observability_config.exporter_type = self._detect_exporter()

        if self.is_production and self.observability_config.trace_sample_rate == 1.0:
            self.observability_config.trace_sample_rate = 0.1

    def _detect_formatter(self) -> Literal["console", "json"]:
        """Auto-detect log formatter based on environment."""
        if os.getenv("K_SERVICE") or os.getenv("AWS_EXECUTION_ENV"):
            return "json"
        if self.environment == "development":
            return "console"
        return "json"

    def _detect_exporter(self) -> Literal["console", "otlp"]:
        """Auto-detect trace exporter based on environment."""
        if self.environment == "development":
            return "console"
        return "otlp"

    def _default_cors_origins(self) -> list[str]:
        """Default cross-origin allow-list for the current mode."""
        if self.is_production:
            return [self.frontend_url]
        return list(DEVELOPMENT_CORS_ORIGINS)

    @model_validator(mode="after")
    def require_session_secret_in_production(self) -> Self:
        """Refuse to run production with the placeholder session secret."""
        if (
            self.environment == "production"
            and self.session_secret.get_secret_value() == DEFAULT_SESSION_SECRET
        ):
            msg = "SESSION_SECRET must be set when running in production"
            raise ValueError(msg)
        return self

    @field_validator("docs_url", "openapi_url", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
