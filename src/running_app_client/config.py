"""Configuration for the running app client.

Uses Pydantic v2 for validation. Defaults match the browser client the
running app ships with: 10 second timeout, 3 retries, 1 second base delay.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
)


class RetryConfig(BaseModel):
    """Retry configuration with exponential backoff."""

    model_config = ConfigDict(frozen=True)

    max_retries: Annotated[int, Field(ge=0, le=10)] = 3
    base_delay: Annotated[float, Field(ge=0, le=60)] = 1.0


class TelemetryConfig(BaseModel):
    """Logging and tracing configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "running-app-client"
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        supported = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in supported:
            msg = f"Unsupported log level: {v}. Supported: {supported}"
            raise ValueError(msg)
        return v.upper()


class ClientConfig(BaseModel):
    """Main configuration for the API client."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    # Required
    base_url: HttpUrl

    # HTTP settings
    timeout: Annotated[float, Field(ge=0, le=300)] = 10.0
    connect_timeout: Annotated[float, Field(gt=0, le=60)] = 5.0

    # Sub-configurations
    retry: RetryConfig = Field(default_factory=RetryConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    # Auth endpoints
    refresh_path: str = "/api/auth/refresh"
    auth_path_prefix: str = "/api/auth/"

    # Token persistence (in memory when unset)
    token_file: Path | None = None

    @field_validator("refresh_path", "auth_path_prefix")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Endpoint paths are relative to base_url."""
        if not v.startswith("/"):
            msg = f"Path must start with '/': {v}"
            raise ValueError(msg)
        return v

    @property
    def base_url_str(self) -> str:
        """Get base URL as string without trailing slash."""
        return str(self.base_url).rstrip("/")

    def with_overrides(self, **kwargs: Any) -> Self:
        """Create new config with overridden values."""
        data = self.model_dump(mode="json")
        data.update(kwargs)
        return self.__class__(**data)

    @classmethod
    def from_env(cls, prefix: str = "RUNNING_APP_") -> Self:
        """Create config from environment variables."""
        import os

        def get_env(key: str, default: Any = None) -> Any:
            return os.environ.get(f"{prefix}{key}", default)

        base_url = get_env("BASE_URL")
        if not base_url:
            msg = f"{prefix}BASE_URL environment variable is required"
            raise ValueError(msg)

        token_file = get_env("TOKEN_FILE")

        return cls(
            base_url=base_url,
            timeout=float(get_env("TIMEOUT", "10.0")),
            retry=RetryConfig(
                max_retries=int(get_env("RETRIES", "3")),
                base_delay=float(get_env("RETRY_DELAY", "1.0")),
            ),
            telemetry=TelemetryConfig(log_level=get_env("LOG_LEVEL", "INFO")),
            token_file=Path(token_file) if token_file else None,
        )
