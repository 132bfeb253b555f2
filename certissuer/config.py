"""Application settings."""

from __future__ import annotations

import json
from functools import cached_property
from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_SECRET = "dev-secret"


class Settings(BaseSettings):
    """Central configuration entrypoint for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True

    # Server
    base_url: str = "http://127.0.0.1:8000"
    api_prefix: str = "/api"
    allowed_origins: list[str] = [
        "http://localhost:4200",
        "http://127.0.0.1:4200",
    ]

    # Observability
    log_level: str = "INFO"

    # Metrics endpoint authentication
    metrics_username: str = "prometheus"
    metrics_password: str | None = None

    # Database
    database_url: str = Field(
        default="sqlite:///./data/certissuer.db",
        validation_alias=AliasChoices("DATABASE_URL"),
    )
    async_database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ASYNC_DATABASE_URL"),
    )
    db_echo: bool = Field(
        default=False,
        validation_alias=AliasChoices("DB_ECHO", "SQL_ECHO"),
    )

    # Storage
    certificates_dir: str = "uploads/certificates"

    # PDF defaults
    default_accent_color: str = "#2c3e50"

    # Security
    secret_key: str = Field(
        default=DEV_SECRET,
        validation_alias=AliasChoices("SECRET_KEY", "JWT_SECRET"),
    )
    signing_secret: str | None = None
    jwt_lifetime_seconds: int = 7 * 24 * 60 * 60
    admin_email: str | None = None
    admin_password: str | None = None

    # Issuance
    batch_concurrency: int = Field(default=8, ge=1)
    certificate_number_attempts: int = Field(default=3, ge=1)

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: str | list[str] | None) -> list[str]:
        """Normalize ALLOWED_ORIGINS env input into a list."""
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return []
            if raw.startswith("["):
                try:
                    parsed = json.loads(raw)
                    if isinstance(parsed, list):
                        return parsed
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in raw.split(",") if item.strip()]
        return []

    @field_validator("api_prefix")
    @classmethod
    def normalize_api_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = f"/{value}"
        return value

    @model_validator(mode="after")
    def require_process_secret(self) -> Settings:
        """Refuse to start without a usable signing secret."""
        if not self.secret_key:
            raise ValueError("SECRET_KEY must be set")
        if self.signing_secret is not None and not self.signing_secret:
            raise ValueError("SIGNING_SECRET must not be empty")
        if self.is_production and self.resolved_signing_secret == DEV_SECRET:
            raise ValueError("refusing to run in production with the dev secret")
        return self

    @property
    def is_production(self) -> bool:
        """Return True when running in production."""
        return self.environment == "production"

    @property
    def cors_origins(self) -> list[str]:
        """Expose allowed CORS origins for middleware wiring."""
        return self.allowed_origins

    @property
    def resolved_signing_secret(self) -> str:
        """HMAC key for certificate signatures."""
        return self.signing_secret or self.secret_key

    @cached_property
    def resolved_database_url(self) -> str:
        """Return the primary sync SQLAlchemy URL."""
        return self.database_url

    @cached_property
    def resolved_async_database_url(self) -> str:
        """Return the async SQLAlchemy URL derived from the sync configuration."""
        if self.async_database_url:
            return self.async_database_url
        base_url = self.resolved_database_url
        if base_url.startswith("sqlite:///"):
            return base_url.replace("sqlite:///", "sqlite+aiosqlite:///")
        return base_url

    def verification_url(self, token: str) -> str:
        """Public URL a third party follows to verify a certificate."""
        return f"{self.base_url}{self.api_prefix}/certificates/verify/{token}"


settings = Settings()
