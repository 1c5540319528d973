"""Application configuration."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ACCULOG_ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from ACCULOG_* environment variables."""

    accounts_db_path: Path
    countdown_seconds: int = Field(default=4, ge=1)
    jpeg_quality: float = Field(default=0.9, gt=0, le=1)
    front_camera_index: int = 0
    back_camera_index: int = 1
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="ACCULOG_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
