"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal
from urllib.parse import quote_plus, urlsplit, urlunsplit

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Static type checkers treat BaseSettings fields as constructor arguments,
    which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_mongo_settings() -> "MongoSettings":
    return MongoSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    host: str = Field(
        "0.0.0.0",
        description="Interface the HTTP server binds to",
    )
    port: int = Field(
        8080,
        description="Port the HTTP server listens on",
    )
    store_backend: Literal["mongo", "memory"] = Field(
        "mongo",
        description="User store backend: 'mongo' for MongoDB, 'memory' for local/dev",
    )
    referral_code_max_attempts: int = Field(
        5,
        description="Maximum attempts to find a referral code not already in use",
        ge=1,
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by CORS (JSON list in env, e.g. '[\"https://a.com\"]')",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable global rate limiting per client address",
    )
    rate_limit_requests: int = Field(
        60,
        description="Maximum number of requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    rate_limit_trust_forwarded_for: bool = Field(
        False,
        description="Derive client address from X-Forwarded-For / X-Real-IP (behind a proxy)",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class MongoSettings(BaseSettings):
    """MongoDB connection configuration.

    Either provide a full ``MONGODB_URI`` or the Atlas-style parts
    (username, password, host, database) and let :meth:`resolved_uri`
    assemble a ``mongodb+srv://`` URI.
    """

    uri: str | None = Field(
        None,
        description="Full MongoDB connection string",
    )
    username: str | None = Field(None, description="MongoDB user (Atlas)")
    password: str | None = Field(None, description="MongoDB password (Atlas)")
    host: str | None = Field(None, description="MongoDB Atlas cluster host")
    database: str = Field(
        "signup",
        description="Database name",
    )
    collection: str = Field(
        "users",
        description="Collection holding one document per registered user",
    )
    timeout_ms: int = Field(
        10000,
        description="Client-side operation timeout (timeoutMS) in milliseconds",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="MONGODB_",
        case_sensitive=False,
    )

    def resolved_uri(self) -> str:
        """Return the connection URI to use.

        Raises:
            ValueError: If neither a URI nor the full set of Atlas parts is set.
        """
        if self.uri:
            return self.uri

        if not (self.username and self.password and self.host):
            raise ValueError(
                "MongoDB is not configured: set MONGODB_URI or "
                "MONGODB_USERNAME, MONGODB_PASSWORD and MONGODB_HOST"
            )

        return (
            f"mongodb+srv://{quote_plus(self.username)}:{quote_plus(self.password)}"
            f"@{self.host}/{self.database}?retryWrites=true&w=majority"
        )

    def safe_uri(self) -> str:
        """Connection URI with the password replaced, for logging."""
        try:
            uri = self.resolved_uri()
        except ValueError:
            return "UNCONFIGURED"

        parts = urlsplit(uri)
        if parts.password is None:
            return uri

        netloc = f"{parts.username}:REDACTED@{parts.hostname}"
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Log destination",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size; 0 disables rotation",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    mongo: MongoSettings = Field(default_factory=_build_mongo_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
