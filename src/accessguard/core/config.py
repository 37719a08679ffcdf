"""Configuration management for AccessGuard.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded once at process
start and is immutable during runtime.
"""

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables (prefix ``ACCESSGUARD_``)
    and .env files. All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ACCESSGUARD_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "AccessGuard"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"

    # Store Settings
    store_url: str = Field(
        default="sqlite:///./ag_data/accessguard.db",
        description="SQLAlchemy URL of the backing store, or memory:// for an in-process store",
    )
    store_echo: bool = False
    lock_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Maximum wait for a per-sheet write lock before StoreTimeoutError",
    )

    # Authorization Settings
    superuser_role_id: str = "Admin"
    delete_permission_key: Literal["DELETE_USER", "DEACTIVATE_USER"] = Field(
        default="DELETE_USER",
        description="Permission key required by delete_user",
    )

    # Audit Settings
    audit_report_mandatory: bool = Field(
        default=False,
        description="When enabled, a failed audit report write aborts the operation",
    )

    # Credential Settings
    temp_password_length: int = Field(default=10, ge=6)
    session_token_bytes: int = Field(default=32, ge=16)

    # Clock Settings
    timezone: str = "UTC"

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject timezone names the zoneinfo database does not know."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone used for every ISO-8601 timestamp written to the store."""
        return ZoneInfo(self.timezone)

    @property
    def uses_memory_store(self) -> bool:
        """Check if the in-process store is configured."""
        return self.store_url.startswith("memory://")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
