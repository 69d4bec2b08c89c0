"""Moby Kanban configuration settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration loaded from ``MOBY_*`` environment variables (or ``.env``)."""

    model_config = SettingsConfigDict(
        env_prefix="MOBY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Board service
    db_path: str = "./data/moby_kanban.db"
    host: str = "127.0.0.1"
    port: int = 8000

    # Logging
    log_dir: str = "./logs"
    log_level: str = "INFO"

    # Client
    api_base_url: str = "http://127.0.0.1:8000"
    api_key: Optional[str] = None
    request_timeout: float = Field(default=10.0, gt=0)
    notice_ttl_seconds: float = Field(default=3.0, gt=0)
    drag_activation_distance: float = Field(default=8.0, ge=0)


@lru_cache
def get_settings() -> Settings:
    return Settings()
