from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str = "marketsnap"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "marketsnap"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"
    CONTENT_CHANNEL_PREFIX: str = "content.changed"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None
    JWT_AUDIENCE: str | None = None

    CORS_ORIGINS: list[str] = ["*"]

    MESSAGE_MAX_LENGTH: int = 500
    BROADCAST_MAX_LENGTH: int = 100

    LIVE_VIEW_TICK_SECONDS: float = 30.0

    SWEEP_INTERVAL_SECONDS: float = 3600.0
    SWEEP_BATCH_SIZE: int = 500
    SWEEPER_IN_PROCESS: bool = False

    PUSH_SEND_TIMEOUT_SECONDS: float = 10.0
    PUSH_MAX_CONCURRENCY: int = 50
    FCM_PROJECT_ID: str = ""
    FCM_ACCESS_TOKEN: str = ""
    FCM_BASE_URL: str = "https://fcm.googleapis.com"

    WS_HEARTBEAT_SECONDS: int = 30

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
