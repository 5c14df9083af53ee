"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    production = "production"


class StorageBackend(str, Enum):
    file = "file"
    redis = "redis"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Remote quote collection
    REMOTE_BASE_URL: str = "https://jsonplaceholder.typicode.com"
    REMOTE_PAGE_SIZE: int = 10
    REMOTE_OWNER_TAG: int = 1
    REMOTE_TIMEOUT_SECONDS: float = 10.0
    REMOTE_MAX_ATTEMPTS: int = 3
    REMOTE_BACKOFF_SECONDS: float = 1.0

    # Sync
    SYNC_INTERVAL_SECONDS: int = 30

    # Storage
    STORAGE_BACKEND: StorageBackend = StorageBackend.file
    DATA_DIR: str = ".quotesync"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "quotesync"
    SESSION_TTL_SECONDS: int = 3600  # Session-scoped slots expire on Redis


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
