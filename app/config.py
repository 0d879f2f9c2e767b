#config.py
import os
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict
from typing import Optional, List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")
    # Application Settings
    APP_NAME: str = "Images API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # Database Settings
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./images.db")

    # CORS Settings (accept comma-separated strings to avoid JSON parsing in env)
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")
    CORS_ALLOW_CREDENTIALS: bool = True

    # Upload validation
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB, 0 = unlimited
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp"]
    TITLE_MAX_LENGTH: int = 255
    MIN_DIMENSION: int = 1
    MAX_DIMENSION: int = 10000

    # Storage Settings
    STORAGE_PROVIDER: str = "local"  # local | s3
    STORAGE_BASE_PATH: str = "uploads"
    STORAGE_BASE_URL: str = os.environ.get("STORAGE_BASE_URL", "http://localhost:8000/uploads")
    S3_BUCKET: str = os.environ.get("S3_BUCKET", "")
    S3_REGION: str = os.environ.get("S3_REGION", "us-east-1")
    S3_ENDPOINT_DOMAIN: str = "amazonaws.com"
    S3_ACCESS_KEY_ID: Optional[str] = os.environ.get("S3_ACCESS_KEY_ID", None)
    S3_SECRET_ACCESS_KEY: Optional[str] = os.environ.get("S3_SECRET_ACCESS_KEY", None)

    # Queue Settings
    QUEUE_BACKEND: str = "memory"  # memory | redis
    REDIS_URL: Optional[str] = os.environ.get("REDIS_URL", None)
    IMAGE_PROCESSING_QUEUE: str = "image-processing"
    QUEUE_POLL_TIMEOUT_SECONDS: float = 1.0
    # names this process's redis processing list; must be stable across restarts and unique per process
    QUEUE_CONSUMER_NAME: Optional[str] = os.environ.get("QUEUE_CONSUMER_NAME", None)

    # Worker Settings
    WORKER_ENABLED: bool = True  # run resize workers inside the API process
    WORKER_CONCURRENCY: int = 2

    # Notifications
    SSE_KEEPALIVE_SECONDS: float = 15.0

    # Listing
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)


@lru_cache()
def get_settings() -> Settings:
    s = Settings()
    # Normalize ALLOWED_ORIGINS if provided as comma-separated string env var CORS_ORIGINS
    cors_env = os.environ.get("CORS_ORIGINS")
    if cors_env:
        s.ALLOWED_ORIGINS = cors_env
    return s

settings: Settings = get_settings()
