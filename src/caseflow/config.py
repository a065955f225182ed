"""
Caseflow configuration management using pydantic-settings.

Settings are read from environment variables and an optional .env file.
"""

import warnings
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./caseflow.db",
        description="SQLAlchemy async connection URL (postgresql+asyncpg:// in production)",
    )
    auto_create_schema: bool = Field(
        default=True,
        description="Create missing tables on startup",
    )

    # Application Settings
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Security - CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:5173"],
        description="Allowed CORS origins",
    )
    cors_allow_credentials: bool = Field(
        default=True, description="Allow credentials in CORS"
    )

    # Security - Rate Limiting
    rate_limit_enabled: bool = Field(default=True, description="Enable rate limiting")
    rate_limit_requests: int = Field(
        default=300, description="Rate limit requests per window"
    )
    rate_limit_window_seconds: int = Field(
        default=60, description="Rate limit window in seconds"
    )

    # Notifications (submission emails, VFS reminders)
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook receiving workflow side-effect requests; log-only when unset",
    )
    notification_timeout_seconds: float = Field(
        default=10.0, description="Timeout for the notification webhook"
    )

    # Workflow rules
    notification_period_days: int = Field(
        default=14,
        description="High Court Letter of Demand notification period in days",
    )
    settlement_window_days: int = Field(
        default=14,
        description="Days allowed between Return of Service and Settlement",
    )
    enforce_notification_period: bool = Field(
        default=False,
        description="Block advancing past Letter of Demand until the notification period ends",
    )
    deadline_warning_days: int = Field(
        default=7, description="Window for upcoming deadline reporting"
    )
    max_appeal_chain_depth: int = Field(
        default=50, description="Maximum ancestors followed when walking an appeal chain"
    )
    bulk_delete_max: int = Field(
        default=500, description="Maximum case IDs accepted by one bulk delete"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("notification_period_days", "settlement_window_days")
    @classmethod
    def validate_period(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Workflow periods must be at least one day")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Ensure critical settings are configured in production."""
        if self.environment == "production":
            if self.debug:
                raise ValueError("DEBUG must be False in production")
            if self.database_url.startswith("sqlite"):
                warnings.warn(
                    "DATABASE_URL points at SQLite in production",
                    UserWarning,
                    stacklevel=2,
                )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


# Global settings instance
settings = Settings()
