from __future__ import annotations

from typing import Protocol

from ephemeral_service.application.dto.notification import PushNotification


class PushSender(Protocol):
    async def send(self, token: str, notification: PushNotification) -> None:
        """Deliver to one device token; raise ``DispatchError`` on failure."""
        ...
