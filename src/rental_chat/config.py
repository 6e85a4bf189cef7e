from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_ECHO: bool = False
    DB_APPLICATION_NAME: str = "rental-chat"

    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None

    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    LOG_LEVEL: str = "info"

    CORS_ORIGINS: list[str] = ["*"]

    # "pair" keys conversations by (sender, receiver); "connection" by
    # tenant_landlord_connections.id when the partner has one.
    CONVERSATION_KEY_MODE: Literal["pair", "connection"] = "pair"
    MESSAGE_HISTORY_LIMIT: int = 500

    NOTIFICATION_POLL_SECONDS: float = 60.0
    NOTIFICATION_LIST_LIMIT: int = 50

    LIVE_TOPIC_PREFIX: str = "rental.live"

    OUTBOX_POLL_INTERVAL: float = 1.0
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 5

    WS_HEARTBEAT_SECONDS: int = 30

    RENTAL_EVENTS_STREAM: str = "rental.events"
    RENTAL_EVENTS_GROUP: str = "rental-chat"

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


settings = Settings()  # type: ignore[call-arg]
