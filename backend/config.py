# =============================================================================
# BODY MANUAL BACKEND - CONFIGURATION
# =============================================================================
"""
Configuration management using Pydantic Settings.
Handles environment variables, data retention and the encryption key.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = Field(
        default="sqlite:///data/body_manual.db",
        alias="DATABASE_URL"
    )

    # Feature Toggles
    dev_mode: bool = Field(default=False, alias="DEV_MODE")
    seed_achievements: bool = Field(default=True, alias="SEED_ACHIEVEMENTS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security - AES-256 requires 32 bytes (256 bits)
    encryption_key: str = Field(
        default="body_manual_default_key_change!!",  # 32 chars
        alias="ENCRYPTION_KEY"
    )

    # Janitor Configuration
    data_retention_days: int = Field(
        default=365, ge=30, le=3650, alias="DATA_RETENTION_DAYS"
    )
    janitor_schedule_hour: int = Field(
        default=3, ge=0, le=23, alias="JANITOR_SCHEDULE_HOUR"
    )

    @property
    def database_path(self) -> Path:
        """Filesystem path of the SQLite database."""
        return Path(self.database_url.replace("sqlite:///", ""))


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance for dependency injection."""
    return Settings()
