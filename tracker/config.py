"""
Configuration and settings for the tracker backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="")

    # Database (any SQLAlchemy URL; SQLite file by default)
    database_url: str = Field(default="sqlite+pysqlite:///./database.db")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias="TRACKER_USE_IN_MEMORY_BACKENDS",
    )

    # "atomic" appends with one UPDATE; "read_modify_write" reads, appends and
    # writes back in separate statements.
    membership_append_mode: Literal["atomic", "read_modify_write"] = Field(
        default="atomic"
    )

    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
