"""Credential store configuration using Pydantic Settings"""

import logging
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

BOT_SCOPES = [
    "user:bot",
    "user:read:chat",
    "user:write:chat",
    "moderator:read:followers",
    "moderator:manage:announcements",
    "user:manage:whispers",
]

BROADCASTER_SCOPES = [
    "channel:bot",
    "channel:read:redemptions",
    "channel:read:subscriptions",
    "channel:manage:vips",
    "bits:read",
]

# Vocabulary registered on bootstrap. Append-only: never remove entries.
DEFAULT_SCOPES = BOT_SCOPES + BROADCASTER_SCOPES


class StoreSettings(BaseSettings):
    """Credential store settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    pool_min_size: int = Field(default=1, description="Minimum pooled connections")
    pool_max_size: int = Field(default=5, description="Maximum pooled connections")

    # Token lifetimes
    ephemeral_token_ttl: int = Field(
        default=600, description="Ephemeral token lifetime in seconds"
    )
    session_token_ttl: int = Field(default=30, description="Session token lifetime in days")
    max_issue_attempts: int = Field(
        default=3, description="Random token regenerations before giving up"
    )

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL starts with postgresql://"""
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("max_issue_attempts")
    @classmethod
    def validate_max_issue_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_ISSUE_ATTEMPTS must be at least 1")
        return v

    @property
    def ephemeral_lifetime(self) -> timedelta:
        return timedelta(seconds=self.ephemeral_token_ttl)

    @property
    def session_lifetime(self) -> timedelta:
        return timedelta(days=self.session_token_ttl)


@lru_cache
def get_settings() -> StoreSettings:
    """Get cached settings instance"""
    return StoreSettings()  # type: ignore[call-arg]
