"""Application settings."""

from __future__ import annotations

import json
from datetime import timedelta
from typing import Annotated, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration entrypoint for the contact gate service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    # CORS: "*" by default, pin to the site origin when hardening
    allowed_origins: Annotated[list[str], NoDecode] = ["*"]

    # Observability
    log_level: str = "INFO"
    enable_tracing: bool = False
    otlp_endpoint: str | None = None
    otlp_headers: str | None = None

    # Metrics endpoint authentication
    metrics_username: str = "prometheus"
    metrics_password: str | None = None

    # Rate limiting
    rate_limit_window_ms: int = Field(
        default=60 * 60 * 1000,
        gt=0,
        validation_alias=AliasChoices(
            "rate_limit_window_ms", "RATE_LIMIT_WINDOW_MS", "RATE_LIMIT_WINDOW"
        ),
    )
    rate_limit_max_requests: int = Field(
        default=3,
        ge=1,
        validation_alias=AliasChoices(
            "rate_limit_max_requests", "MAX_REQUESTS_PER_WINDOW", "MAX_REQUESTS"
        ),
    )
    rate_limit_backend: Literal["memory", "database"] = "memory"

    # Bot detection
    min_submission_time_ms: int = Field(
        default=3000,
        ge=0,
        validation_alias=AliasChoices("min_submission_time_ms", "MIN_SUBMISSION_TIME"),
    )
    max_submission_time_ms: int = Field(
        default=60 * 60 * 1000,
        gt=0,
        validation_alias=AliasChoices("max_submission_time_ms", "MAX_SUBMISSION_TIME"),
    )
    min_message_words: int = 3
    # Empirical thresholds, tuned for Latin-alphabet text only
    vowel_ratio_min: float = 0.15
    vowel_ratio_max: float = 0.7

    # Database (only used by the "database" rate limit backend)
    database_url: str = Field(
        default="sqlite:///./contactgate.db",
        validation_alias=AliasChoices("database_url", "DATABASE_URL"),
    )
    db_echo: bool = Field(
        default=False,
        validation_alias=AliasChoices("db_echo", "DB_ECHO", "SQL_ECHO"),
    )

    # Email configuration
    email_enabled: bool = True
    email_backend: Literal["resend", "smtp"] = "resend"
    resend_api_key: str | None = None
    resend_api_url: str = "https://api.resend.com"
    email_timeout_seconds: float = 10.0
    email_from_name: str = "Portfolio Contact"
    email_from_addr: str = Field(
        default="onboarding@resend.dev",
        validation_alias=AliasChoices(
            "email_from_addr", "EMAIL_FROM_ADDR", "RESEND_FROM_EMAIL"
        ),
    )
    email_to_addr: str = Field(
        default="contact@example.com",
        validation_alias=AliasChoices(
            "email_to_addr", "EMAIL_TO_ADDR", "RESEND_TO_EMAIL"
        ),
    )
    email_subject_tag: str = "[Portfolio]"

    # SMTP fallback
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_pass: str | None = None
    smtp_starttls: bool = True
    smtp_ssl: bool = False

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

    @property
    def is_production(self) -> bool:
        """Return True when running in production."""
        return self.environment == "production"

    @property
    def cors_origins(self) -> list[str]:
        """Expose allowed CORS origins for middleware wiring."""
        return self.allowed_origins

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(milliseconds=self.rate_limit_window_ms)

    @property
    def min_submission_time(self) -> timedelta:
        return timedelta(milliseconds=self.min_submission_time_ms)

    @property
    def max_submission_time(self) -> timedelta:
        return timedelta(milliseconds=self.max_submission_time_ms)


settings = Settings()
