"""Application settings using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process configuration loaded from environment variables (BACKDATE_*)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BACKDATE_",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    app_name: str = "backdate"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"

    # ==========================================================================
    # Repository
    # ==========================================================================
    repo_path: str = "."
    remote_name: str = "origin"
    git_user_name: str | None = None
    git_user_email: str | None = None
    git_timeout_seconds: int = Field(default=30, gt=0)
    remote_check_timeout_seconds: int = Field(default=10, gt=0)

    # ==========================================================================
    # Generation defaults
    # ==========================================================================
    default_message_template: str = "auto commit: {{date}}"
    default_target_path: str = ".backdate-log"

    # ==========================================================================
    # Config files
    # ==========================================================================
    config_file_names: list[str] = Field(
        default=[".backdaterc", ".backdaterc.json", ".backdaterc.yaml", ".backdaterc.yml"]
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
