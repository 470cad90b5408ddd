from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List
import os

from .constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_RETRY_MULTIPLIER,
    MAX_RETRY_DELAY_SECONDS,
)


class Settings(BaseSettings):
    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Schema Sync"
    VERSION: str = "1.0.0"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Database
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 2
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_POOL_RECYCLE: int = 3600
    DATABASE_CONNECT_TIMEOUT: int = 15

    # Synchronization
    SYNC_TIMEOUT: Optional[float] = 300  # 5 minutes, None disables the deadline
    SYNC_TRANSACTIONAL: bool = False

    # Retry policy
    RETRY_MAX_ATTEMPTS: int = DEFAULT_MAX_RETRIES
    RETRY_BASE_DELAY: float = DEFAULT_RETRY_DELAY_SECONDS
    RETRY_MAX_DELAY: float = MAX_RETRY_DELAY_SECONDS
    RETRY_MULTIPLIER: float = DEFAULT_RETRY_MULTIPLIER

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    @property
    def cors_origins(self) -> List[str]:
        """Get CORS origins from environment or use defaults"""
        origins = os.getenv("BACKEND_CORS_ORIGINS", "")
        if origins:
            return [origin.strip() for origin in origins.split(",")]
        return self.BACKEND_CORS_ORIGINS

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_prefix="SCHEMA_SYNC_",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
