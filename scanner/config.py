"""Runtime settings, read from ``ROBOTS_SCAN_*`` environment variables or ``.env``."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from scanner.robots import USER_AGENT


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ROBOTS_SCAN_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///robots_data.db"
    concurrency: int = Field(default=50, ge=1)
    request_timeout: float = Field(default=10.0, gt=0)
    max_redirects: int = Field(default=5, ge=0)
    user_agent: str = USER_AGENT
    progress_interval: int = Field(default=100, ge=1)
    max_agent_length: int = Field(default=512, ge=1)
    default_scheme: Literal["http", "https"] = "https"
    record_not_found: bool = False
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
