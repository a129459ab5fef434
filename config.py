"""
Application settings loaded from environment variables (and a local .env file).

Every field without a default is required; the process refuses to start when
one of them is missing.
"""

import logging
from functools import lru_cache
from typing import List

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # MongoDB
    DATABASE_URL: str
    DATABASE_NAME: str

    # S3
    AWS_REGION: str
    AWS_ACCESS_KEY_ID: str
    AWS_SECRET_ACCESS_KEY: str
    S3_BUCKET_NAME: str

    # HTTP
    PORT: int
    ALLOWED_ORIGINS: str
    API_VERSION: str = "v1"

    # Redis ("memory://" keeps the cache in-process)
    REDIS_URL: str
    CACHE_TTL: int = 3600

    # Rate limiting
    RATE_LIMIT_MAX_REQUESTS: int
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    LOG_LEVEL: str = "INFO"

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors() if err["type"] == "missing"]
        if missing:
            logger.error(f"Missing environment variables: {', '.join(missing)}")
        else:
            logger.error(f"Invalid configuration: {e}")
        raise
