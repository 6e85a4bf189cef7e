from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rental_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from rental_chat.api.middleware.metrics import RequestTimingMiddleware
from rental_chat.api.v1.routers import health, messages, notifications, partners, ws
from rental_chat.application.exceptions import (
    AppError,
    ConflictError,
    FetchFailedError,
    ForbiddenError,
    NotFoundError,
    SendFailedError,
    ValidationError,
)
from rental_chat.config import settings
from rental_chat.infrastructure.bus.redis_pubsub import RedisLiveChannel

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    app.state.live = RedisLiveChannel(app.state.redis)
    logger.info("Redis connection pool created (live prefix=%s)", settings.LIVE_TOPIC_PREFIX)

    yield

    await app.state.live.aclose()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Rental Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(partners.router)
    app.include_router(messages.router)
    app.include_router(notifications.router)
    app.include_router(ws.router)

    return app


_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (ConflictError, 409),
    (ValidationError, 422),
    (FetchFailedError, 502),
    (SendFailedError, 502),
)


def _register_exception_handlers(app: FastAPI) -> None:
    for exc_type, status_code in _STATUS_BY_ERROR:
        app.add_exception_handler(exc_type, _handler(status_code))


def _handler(status_code: int):
    async def _handle(_req: Request, exc: AppError) -> JSONResponse:
        if status_code >= 500:
            logger.warning("Upstream failure: %s", exc.detail, exc_info=exc)
        return JSONResponse(status_code=status_code, content={"detail": exc.detail})

    return _handle
