"""
config.py — Centralized Application Configuration Loader

Purpose:
- Define a single source of truth for application settings.
- Load and validate environment variables from `.env` or OS environment.
- Fail fast at startup when the token signing secret is missing.

Core settings groups:
1. Token signing (JWT secret, algorithm, lifetime)
2. Password / reset-token hashing cost factors
3. Database connection
4. HTTP hardening (CORS, request size, rate limiting)

This module does NOT:
- Execute any DB connections.
- Hash, sign or verify anything.
- Modify runtime settings.
"""

from pathlib import Path
from typing import Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Find .env file relative to backend directory
# config.py is at: backend/app/core/config.py
# .env should be at: backend/.env
_CONFIG_DIR = Path(__file__).parent  # backend/app/core
_BACKEND_DIR = _CONFIG_DIR.parent.parent  # backend
_ENV_FILE = _BACKEND_DIR / ".env"

# Use absolute path for reliability
if _ENV_FILE.exists():
    _ENV_FILE_PATH = str(_ENV_FILE.resolve())
else:
    # Fallback: use relative path (pydantic will look in CWD)
    _ENV_FILE_PATH = ".env"


class Settings(BaseSettings):
    """
    Settings container for the Todo backend.

    JWT_SECRET_KEY has no default: constructing Settings without it raises,
    which stops the process before any token operation can run.
    """

    # Token signing
    JWT_SECRET_KEY: str = Field(
        ...,
        min_length=1,
        description="Process-wide secret used to sign bearer tokens",
    )
    JWT_ALGORITHM: str = Field(
        "HS256",
        description="JWT signing algorithm",
    )
    JWT_EXPIRE_MINUTES: int = Field(
        1440,
        gt=0,
        description="Lifetime of login/register bearer tokens (minutes)",
    )

    # Hashing
    PASSWORD_HASH_ROUNDS: int = Field(
        12,
        ge=4,
        le=31,
        description="bcrypt cost factor for account passwords",
    )
    RESET_TOKEN_HASH_ROUNDS: int = Field(
        10,
        ge=4,
        le=31,
        description="bcrypt cost factor for password-reset secrets",
    )
    RESET_TOKEN_BYTES: int = Field(
        32,
        ge=32,
        description="Random bytes per password-reset secret",
    )
    RESET_TOKEN_EXPIRE_MINUTES: int = Field(
        60,
        gt=0,
        description="How long a password-reset secret stays valid (minutes)",
    )

    # Database
    DATABASE_URL: str = Field(
        "sqlite:///./todo.db",
        description="SQLAlchemy database URL (sqlite or postgresql)",
    )
    DB_CREATE_TABLES: bool = Field(
        True,
        description="Create missing tables when the app starts",
    )

    # HTTP
    API_PREFIX: str = Field(
        "",
        description="Prefix under which the auth and todo routers are mounted",
    )
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins",
    )
    MAX_REQUEST_BYTES: int = Field(
        1024 * 1024,
        gt=0,
        description="Maximum accepted Content-Length (bytes)",
    )
    RATE_LIMIT_ENABLED: bool = Field(
        True,
        description="Enable the per-client request limiter",
    )
    RATE_LIMIT_WINDOW_SECONDS: int = Field(
        15 * 60,
        gt=0,
        description="Rate limiter window (seconds)",
    )
    RATE_LIMIT_MAX_REQUESTS: int = Field(
        100,
        gt=0,
        description="Requests allowed per client per window",
    )

    # Runtime
    ENVIRONMENT: str = Field(
        "development",
        description="'development', 'test' or 'production'",
    )
    LOG_LEVEL: str = Field(
        "INFO",
        description="Root log level",
    )

    @field_validator("JWT_SECRET_KEY", mode="before")
    @classmethod
    def strip_secret(cls, v: Any) -> str:
        """Strip whitespace from the signing secret."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("API_PREFIX")
    @classmethod
    def normalize_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Singleton pattern: settings imported anywhere will reference same object.
settings = Settings()
