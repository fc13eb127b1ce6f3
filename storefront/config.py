"""
Settings — read once from the environment (``STOREFRONT_*``) or a ``.env`` file.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///./storefront.db"
    database_echo: bool = False
    # seconds a transaction waits for the sqlite write lock
    database_busy_timeout: float = 30.0

    session_secret: str = "change-me"
    # one week
    session_max_age: int = 60 * 60 * 24 * 7

    # bcrypt cost factor for new password hashes (4-31)
    password_rounds: int = 12

    currency: str = "SGD"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ("Settings", "get_settings")
