from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ephemeral_service.api.middleware.correlation_id import CorrelationIdMiddleware
from ephemeral_service.api.v1.routers import (
    accounts,
    admin,
    content,
    health,
    messages,
    ws,
)
from ephemeral_service.application.context import AppContext
from ephemeral_service.application.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    StoreError,
)
from ephemeral_service.application.ports.clock import SystemClock
from ephemeral_service.config import settings
from ephemeral_service.infrastructure.bus.redis_pubsub import RedisChangeFeed
from ephemeral_service.infrastructure.db.content_store import SqlAlchemyContentStore
from ephemeral_service.infrastructure.db.recipient_directory import SqlAlchemyRecipientDirectory
from ephemeral_service.infrastructure.db.session import AsyncSessionLocal, engine
from ephemeral_service.infrastructure.push.fcm_sender import FcmHttpSender
from ephemeral_service.services.fanout import FanoutDispatcher
from ephemeral_service.services.notification_service import NotificationPipeline
from ephemeral_service.services.sweeper import ExpirySweeper
from ephemeral_service.workers.sweeper_worker import SweepScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    http_client = httpx.AsyncClient(timeout=settings.PUSH_SEND_TIMEOUT_SECONDS)
    clock = SystemClock()
    store = SqlAlchemyContentStore(
        AsyncSessionLocal,
        RedisChangeFeed(app.state.redis, settings.CONTENT_CHANNEL_PREFIX),
    )
    directory = SqlAlchemyRecipientDirectory(AsyncSessionLocal)
    pipeline = NotificationPipeline(
        directory,
        FanoutDispatcher(
            FcmHttpSender(
                http_client,
                settings.FCM_PROJECT_ID,
                settings.FCM_ACCESS_TOKEN,
                settings.FCM_BASE_URL,
            ),
            send_timeout=settings.PUSH_SEND_TIMEOUT_SECONDS,
            max_concurrency=settings.PUSH_MAX_CONCURRENCY,
        ),
    )
    app.state.store = store
    app.state.directory = directory
    app.state.pipeline = pipeline
    app.state.ctx = AppContext(
        store=store,
        clock=clock,
        notifier=pipeline,
        message_max_length=settings.MESSAGE_MAX_LENGTH,
        broadcast_max_length=settings.BROADCAST_MAX_LENGTH,
        live_view_tick_seconds=settings.LIVE_VIEW_TICK_SECONDS,
    )
    app.state.sweeper = ExpirySweeper(store, clock, batch_size=settings.SWEEP_BATCH_SIZE)

    scheduler: SweepScheduler | None = None
    if settings.SWEEPER_IN_PROCESS:
        scheduler = SweepScheduler(app.state.sweeper, settings.SWEEP_INTERVAL_SECONDS)
        await scheduler.start()

    yield

    if scheduler is not None:
        await scheduler.stop()
    if pipeline.pending:
        logger.info("Waiting for %d notification tasks", pipeline.pending)
    await pipeline.drain()
    await http_client.aclose()
    await app.state.redis.aclose()
    await engine.dispose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="MarketSnap Ephemeral Content Service",
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
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(content.router)
    app.include_router(accounts.router)
    app.include_router(admin.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(InvalidArgumentError)
    async def _invalid(_req: Request, exc: InvalidArgumentError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(StoreError)
    async def _store_unavailable(req: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store error on %s %s: %s", req.method, req.url.path, exc.detail)
        return JSONResponse(status_code=503, content={"detail": "Content store unavailable"})
