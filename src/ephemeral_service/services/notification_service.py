"""Content-created → push notification pipeline.

Runs off the write path: ``content_created`` only schedules a task.
"""
from __future__ import annotations

import asyncio
import logging

from ephemeral_service.application.dto.notification import FanoutReport, PushNotification
from ephemeral_service.application.ports.recipients import RecipientDirectory
from ephemeral_service.domain.entities.broadcast import Broadcast
from ephemeral_service.domain.entities.content import EphemeralContent
from ephemeral_service.domain.entities.message import Message
from ephemeral_service.domain.value_objects.enums import DeliveryErrorKind, NotificationType
from ephemeral_service.services.fanout import FanoutDispatcher
from ephemeral_service.services.recipients import RecipientResolver, mask_token

logger = logging.getLogger(__name__)

# Failures that mean the token itself is dead; anything else may be transient.
PRUNABLE_ERRORS = frozenset({DeliveryErrorKind.INVALID_TOKEN, DeliveryErrorKind.UNREGISTERED})

DEFAULT_VENDOR_NAME = "A Market Vendor"
DEFAULT_SENDER_NAME = "Someone"
DEFAULT_SNAP_TEXT = "has posted a new snap!"


def build_notification(content: EphemeralContent, sender_name: str | None) -> PushNotification:
    data = {"kind": content.kind.value, "content_id": content.id}
    if isinstance(content, Message):
        name = sender_name or DEFAULT_SENDER_NAME
        return PushNotification(
            title=f"New message from {name}",
            body=content.text,
            data={
                **data,
                "type": NotificationType.NEW_MESSAGE.value,
                "from_id": content.from_id,
                "from_name": name,
            },
        )

    name = sender_name or DEFAULT_VENDOR_NAME
    if isinstance(content, Broadcast):
        return PushNotification(
            title=f"Message from {name}",
            body=content.text,
            data={**data, "type": NotificationType.NEW_BROADCAST.value, "vendor_id": content.owner_id},
        )
    return PushNotification(
        title=f"{name} has a new Snap!",
        body=content.caption or DEFAULT_SNAP_TEXT,
        data={**data, "type": NotificationType.NEW_SNAP.value, "vendor_id": content.owner_id},
    )


class NotificationPipeline:
    """Implements ``ContentNotifier``: resolve recipients, fan out, remediate."""

    def __init__(
        self,
        directory: RecipientDirectory,
        dispatcher: FanoutDispatcher,
        resolver: RecipientResolver | None = None,
    ) -> None:
        self._directory = directory
        self._dispatcher = dispatcher
        self._resolver = resolver or RecipientResolver(directory)
        self._tasks: set[asyncio.Task[FanoutReport | None]] = set()

    def content_created(self, content: EphemeralContent) -> None:
        task = asyncio.create_task(
            self.notify(content), name=f"notify-{content.kind}-{content.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def notify(self, content: EphemeralContent) -> FanoutReport | None:
        """Deliver notifications for ``content``. Errors are logged, never raised."""
        try:
            tokens = await self._resolver.resolve(content)
            if not tokens:
                logger.info("No recipients for %s %s, skipping notification", content.kind, content.id)
                return None

            sender_name = await self._directory.get_display_name(content.owner_id)
            notification = build_notification(content, sender_name)
            report = await self._dispatcher.dispatch(tokens, notification)
            if report.failure_count:
                await self._remediate(report)
            return report
        except Exception:
            logger.exception("Notification pipeline failed for %s %s", content.kind, content.id)
            return None

    async def _remediate(self, report: FanoutReport) -> None:
        dead = [f.token for f in report.failed if f.error_kind in PRUNABLE_ERRORS]
        logger.warning(
            "Failed tokens (%d): %s",
            report.failure_count, [mask_token(t) for t in report.failed_tokens],
        )
        if dead:
            removed = await self._directory.prune_tokens(dead)
            logger.info("Pruned %d invalid push tokens", removed)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled notification task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
