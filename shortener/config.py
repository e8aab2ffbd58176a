from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./shortener.db"
    REDIS_URL: Optional[str] = None
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Set by the auth gateway in front of the service
    USER_ID_HEADER: str = "X-User-Id"

    CODE_MIN_LENGTH: int = 4

    GEO_API_URL: str = "http://api.ipstack.com"
    GEO_API_KEY: Optional[str] = None
    GEO_TIMEOUT_SECONDS: float = 3.0
    GEO_CACHE_TTL_SECONDS: int = 86400

    VISIT_QUEUE_SIZE: int = 10000
    VISIT_WORKERS: int = 4
    VISIT_DRAIN_TIMEOUT_SECONDS: float = 10.0

    class Config:
        env_file = ".env"

settings = Settings()
