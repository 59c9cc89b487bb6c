"""Per-connection registry of live subscriptions."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable

from fastapi import WebSocket

from ephemeral_service.application.exceptions import AppError
from ephemeral_service.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class LiveConnection:
    """One accepted socket and the stream tasks feeding it.

    Every subscription is an ``asyncio.Task`` draining one live stream into
    the socket. Unsubscribing or closing cancels the task, which closes the
    stream and releases its store subscription.
    """

    def __init__(self, ws: WebSocket, user_id: str) -> None:
        self.ws = ws
        self.user_id = user_id
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._send_lock = asyncio.Lock()

    async def send(self, event_type: str, data: dict[str, Any]) -> None:
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        async with self._send_lock:
            await self.ws.send_text(raw)

    async def subscribe(
        self,
        sub_id: str,
        stream: AsyncIterator[Any],
        encode: Callable[[Any], dict[str, Any]],
    ) -> None:
        await self.unsubscribe(sub_id)
        self._tasks[sub_id] = asyncio.create_task(
            self._forward(sub_id, stream, encode), name=f"ws-sub-{self.user_id}-{sub_id}",
        )
        logger.debug("Subscription %s opened for %s", sub_id, self.user_id)

    async def unsubscribe(self, sub_id: str) -> bool:
        task = self._tasks.pop(sub_id, None)
        if task is None:
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Subscription %s closed for %s", sub_id, self.user_id)
        return True

    async def close(self) -> None:
        for sub_id in list(self._tasks):
            await self.unsubscribe(sub_id)

    async def _forward(
        self,
        sub_id: str,
        stream: AsyncIterator[Any],
        encode: Callable[[Any], dict[str, Any]],
    ) -> None:
        try:
            async for value in stream:
                await self.send("snapshot", {"id": sub_id, **encode(value)})
        except AppError as exc:
            logger.warning("Subscription %s for %s failed: %s", sub_id, self.user_id, exc.detail)
            await self._report_failure(sub_id, exc.detail)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Subscription %s for %s crashed", sub_id, self.user_id)
            await self._report_failure(sub_id, "internal error")
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _report_failure(self, sub_id: str, detail: str) -> None:
        self._tasks.pop(sub_id, None)
        try:
            await self.send("error", {"id": sub_id, "code": "subscription_failed", "detail": detail})
        except Exception:
            logger.debug("Could not report failure of %s", sub_id, exc_info=True)


class ConnectionManager:
    """Tracks open live connections per user."""

    def __init__(self) -> None:
        self._connections: dict[str, set[LiveConnection]] = {}

    async def connect(self, ws: WebSocket, user_id: str) -> LiveConnection:
        await ws.accept()
        conn = LiveConnection(ws, user_id)
        self._connections.setdefault(user_id, set()).add(conn)
        logger.debug("WS connected: %s (total=%d)", user_id, len(self._connections))
        return conn

    async def disconnect(self, conn: LiveConnection) -> None:
        await conn.close()
        conns = self._connections.get(conn.user_id)
        if conns:
            conns.discard(conn)
            if not conns:
                del self._connections[conn.user_id]
        logger.debug("WS disconnected: %s", conn.user_id)
