"""Environment-driven settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from convo_sync import constants


class Settings(BaseSettings):
    """Runtime knobs read from ``CONVO_SYNC_*`` variables or a ``.env`` file."""

    upload_url: Optional[str] = None
    upload_timeout: float = 30.0
    log_level: str = "INFO"
    db_echo: bool = False

    model_config = SettingsConfigDict(
        env_prefix=constants.ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
