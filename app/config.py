from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Notification fan-out
    NOTIFICATION_BATCH_SIZE: int = 500
    DEFAULT_NOTIFICATION_LIMIT: int = 10

    # Upper bound for list endpoints taking ?limit=
    MAX_PAGE_LIMIT: int = 365

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", extra="allow")

settings = Settings()
