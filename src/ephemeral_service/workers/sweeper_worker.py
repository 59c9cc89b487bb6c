"""Expiry sweeper worker: runs the sweep on a fixed schedule."""
from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis

from ephemeral_service.application.ports.clock import SystemClock
from ephemeral_service.config import settings
from ephemeral_service.infrastructure.bus.redis_pubsub import RedisChangeFeed
from ephemeral_service.infrastructure.db.content_store import SqlAlchemyContentStore
from ephemeral_service.infrastructure.db.session import AsyncSessionLocal, engine
from ephemeral_service.services.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


class SweepScheduler:
    """Background task calling ``ExpirySweeper.sweep`` every ``interval`` seconds."""

    def __init__(self, sweeper: ExpirySweeper, interval: float) -> None:
        self._sweeper = sweeper
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def started(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="expiry-sweeper")
        logger.info("Expiry sweeper scheduled every %.0fs", self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Expiry sweeper stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._sweeper.sweep()
            except Exception:
                logger.exception("Expiry sweeper loop error")
            await asyncio.sleep(self._interval)


async def run_sweeper_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    store = SqlAlchemyContentStore(
        AsyncSessionLocal, RedisChangeFeed(redis, settings.CONTENT_CHANNEL_PREFIX),
    )
    scheduler = SweepScheduler(
        ExpirySweeper(store, SystemClock(), batch_size=settings.SWEEP_BATCH_SIZE),
        settings.SWEEP_INTERVAL_SECONDS,
    )

    logger.info(
        "Sweeper worker started (interval=%.0fs, batch=%d)",
        settings.SWEEP_INTERVAL_SECONDS,
        settings.SWEEP_BATCH_SIZE,
    )
    await scheduler.start()
    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await scheduler.stop()
        await redis.aclose()
        await engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_sweeper_worker())


if __name__ == "__main__":
    main()
