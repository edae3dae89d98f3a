"""Application configuration."""
from functools import lru_cache
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Cargo Manifest API"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10

    # Staff identity (JWT issued by the identity provider)
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Remote manifest API used by scanning clients (optional)
    MANIFEST_API_URL: Optional[str] = None
    MANIFEST_API_TOKEN: Optional[str] = None

    # Scanning
    SCAN_REQUEST_TIMEOUT_SECONDS: float = 10.0
    SCAN_HISTORY_LIMIT: int = 50

    # Offline queue
    OFFLINE_SYNC_INTERVAL_SECONDS: float = 30.0
    OFFLINE_MAX_SYNC_ATTEMPTS: int = 5
    OFFLINE_QUEUE_PATH: str = "scan_queue.json"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors(cls, v):
        if isinstance(v, str):
            return [o.strip() for o in v.split(",")]
        return v

    class Config:
        env_file = ".env"      # Local only
        case_sensitive = True
        extra = "ignore"      # Ignore unrelated env vars


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
