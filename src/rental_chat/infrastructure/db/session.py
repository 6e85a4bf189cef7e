"""Process-wide async engine and session factory for the rental database."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from rental_chat.config import Settings, settings


def build_engine(cfg: Settings) -> AsyncEngine:
    return create_async_engine(
        cfg.database_url,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=cfg.DB_POOL_SIZE,
        max_overflow=cfg.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=cfg.DB_POOL_RECYCLE,
        echo=cfg.DB_ECHO,
        # Shows up in pg_stat_activity next to the other platform services.
        connect_args={"server_settings": {"application_name": cfg.DB_APPLICATION_NAME}},
    )


engine = build_engine(settings)

# Sessions outlive commits in long-lived sockets, so loaded rows must not expire.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)
