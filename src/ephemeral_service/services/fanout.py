from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ephemeral_service.application.dto.notification import (
    Delivered,
    DeliveryResult,
    Failed,
    FanoutReport,
    PushNotification,
)
from ephemeral_service.application.exceptions import DispatchError
from ephemeral_service.application.ports.push import PushSender
from ephemeral_service.domain.value_objects.enums import DeliveryErrorKind
from ephemeral_service.services.recipients import mask_token

logger = logging.getLogger(__name__)


def dedupe(tokens: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(t for t in tokens if t))


class FanoutDispatcher:
    """Sends one notification to many tokens and accounts for every outcome.

    A single attempt per token; failures (including timeouts) become
    ``Failed`` results and never abort the other sends.
    """

    def __init__(
        self,
        sender: PushSender,
        *,
        send_timeout: float = 10.0,
        max_concurrency: int = 50,
    ) -> None:
        self._sender = sender
        self._send_timeout = send_timeout
        self._max_concurrency = max(1, max_concurrency)

    async def dispatch(
        self, tokens: Iterable[str], notification: PushNotification,
    ) -> FanoutReport:
        targets = dedupe(tokens)
        if not targets:
            return FanoutReport()

        if len(targets) == 1:
            results: list[DeliveryResult] = [await self._send_one(targets[0], notification)]
        else:
            semaphore = asyncio.Semaphore(self._max_concurrency)

            async def bounded(token: str) -> DeliveryResult:
                async with semaphore:
                    return await self._send_one(token, notification)

            results = list(await asyncio.gather(*(bounded(t) for t in targets)))

        report = FanoutReport(tuple(results))
        logger.info(
            "Fan-out %r: %d sent, %d failed",
            notification.title, report.success_count, report.failure_count,
        )
        return report

    async def _send_one(self, token: str, notification: PushNotification) -> DeliveryResult:
        try:
            await asyncio.wait_for(
                self._sender.send(token, notification), self._send_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Push to %s timed out after %.1fs", mask_token(token), self._send_timeout)
            return Failed(token, DeliveryErrorKind.TIMEOUT, "send timed out")
        except DispatchError as exc:
            logger.warning("Push to %s failed: %s (%s)", mask_token(token), exc.kind, exc.detail)
            return Failed(token, exc.kind, exc.detail)
        except Exception as exc:
            logger.exception("Unexpected error pushing to %s", mask_token(token))
            return Failed(token, DeliveryErrorKind.UNKNOWN, str(exc))
        return Delivered(token)
