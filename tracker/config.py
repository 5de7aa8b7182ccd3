"""
Configuration and settings for the tracker service.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")

    # HTTP server
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3000, validation_alias="PORT")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Flat-file persistence
    data_dir: str = Field(default="data", validation_alias="TRACKER_DATA_DIR")
    static_dir: str = Field(default="public", validation_alias="TRACKER_STATIC_DIR")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="TRACKER_USE_IN_MEMORY_BACKENDS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
