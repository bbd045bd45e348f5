"""Configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CARDHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Service
    host: str = Field(
        default="0.0.0.0",
        description="Host for the webhook HTTP server",
    )
    port: int = Field(
        default=8080,
        description="Port for the webhook HTTP server",
    )

    # Credentials
    credentials: dict[str, str] = Field(
        default_factory=dict,
        description="Mapping of API key id to base64 shared secret (JSON)",
    )
    credentials_file: str | None = Field(
        default=None,
        description="Path to a JSON file mapping API key id to base64 shared secret",
    )

    # Signature auth
    signature_exempt_paths: tuple[str, ...] = Field(
        default=("/health", "/metrics"),
        description="Paths exempt from signature verification",
    )
    rejection_status_code: int = Field(
        default=401,
        description="HTTP status returned when a request signature is rejected",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level",
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON lines instead of console output",
    )

    # Tracing
    tracing_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    tracing_otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP collector endpoint (e.g. http://localhost:4317)",
    )
    tracing_console: bool = Field(
        default=False,
        description="Emit traces to console (debug only)",
    )
    tracing_service_name: str | None = Field(
        default=None,
        description="Service name for tracing (defaults to cardhook-service)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
