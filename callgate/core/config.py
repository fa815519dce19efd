"""Library configuration using Pydantic Settings.

Configuration is environment-aware:
- CALLGATE_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
CALLGATE_ENV = os.getenv("CALLGATE_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(CALLGATE_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


def preload_env_file(env_file: str | None) -> None:
    """Copy variables from env_file into os.environ.

    Nested BaseSettings don't inherit env_file, so os.environ is populated
    first. Variables already set by the host process win over the file.
    """

    if env_file:
        load_dotenv(env_file, override=False)


preload_env_file(_env_file)


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


def _build_gate_settings() -> "GateSettings":
    """Build throttle/debounce settings from environment."""

    return GateSettings()


class LogSettings(BaseSettings):
    """Logging configuration consumed by configure_logging()."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: str = Field(
        "json",
        description="Log line format: 'json' or 'plain'",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class GateSettings(BaseSettings):
    """Defaults for the lock adapter and the HTTP rate limit dependency."""

    namespace: str = Field(
        "callgate",
        description="Prefix applied to every key stored by the in-memory lock",
    )
    rate_limit_enabled: bool = Field(
        True,
        description="Enable the HTTP rate limit dependency",
    )
    rate_limit_executions: int = Field(
        10,
        description="Maximum permitted requests per rolling window (per API key or IP)",
        ge=1,
    )
    rate_limit_interval_ms: int = Field(
        60_000,
        description="Rolling window length in milliseconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="CALLGATE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{CALLGATE_ENV} file.
    Raises validation errors on import if a value is malformed.
    """

    callgate_env: str = CALLGATE_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    gate: GateSettings = Field(default_factory=_build_gate_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
