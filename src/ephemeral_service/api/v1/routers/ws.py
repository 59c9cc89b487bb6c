from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ephemeral_service.api.deps import get_verifier
from ephemeral_service.api.v1.schemas.message import MessageResponse
from ephemeral_service.application.context import AppContext
from ephemeral_service.application.dto.principal import Principal
from ephemeral_service.application.exceptions import AppError
from ephemeral_service.config import settings
from ephemeral_service.domain.entities.message import Message
from ephemeral_service.infrastructure.ws.manager import ConnectionManager, LiveConnection
from ephemeral_service.infrastructure.ws.protocol import SubscribeFrame, UnsubscribeFrame, WsInbound
from ephemeral_service.services import message_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

manager = ConnectionManager()

Encoder = Callable[[Any], dict[str, Any]]


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/live")
async def ws_live(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    ctx: AppContext = websocket.app.state.ctx
    conn = await manager.connect(websocket, principal.user_id)

    heartbeat_task = asyncio.create_task(
        _heartbeat(conn), name=f"ws-heartbeat-{principal.user_id}",
    )
    try:
        await _read_loop(conn, ctx)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", principal.user_id)
    finally:
        heartbeat_task.cancel()
        await manager.disconnect(conn)


async def _heartbeat(conn: LiveConnection) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await conn.send("pong", {})
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("WS heartbeat for %s stopped", conn.user_id, exc_info=True)


def _encode_messages(now_fn: Callable[[], Any]) -> Encoder:
    def encode(messages: list[Message]) -> dict[str, Any]:
        now = now_fn()
        return {
            "messages": [
                MessageResponse.from_entity(m, now).model_dump(mode="json") for m in messages
            ],
        }

    return encode


def _open_stream(
    frame: SubscribeFrame, user_id: str, ctx: AppContext,
) -> tuple[AsyncIterator[Any], Encoder]:
    if frame.topic == "conversation":
        if not frame.other_id:
            raise ValueError("other_id is required for the conversation topic")
        stream = message_service.subscribe_conversation(
            user_id, frame.other_id, ctx, limit=frame.limit or 50,
        )
        return stream, _encode_messages(ctx.clock.now)
    if frame.topic == "conversations":
        stream = message_service.subscribe_user_conversations(
            user_id, ctx, limit=frame.limit or 20,
        )
        return stream, _encode_messages(ctx.clock.now)
    if frame.topic == "unread_count":
        return message_service.subscribe_unread_count(user_id, ctx), lambda n: {"count": n}
    raise ValueError(f"unknown topic {frame.topic!r}")


async def _read_loop(conn: LiveConnection, ctx: AppContext) -> None:
    while True:
        raw = await conn.ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except ValidationError:
            await conn.send("error", {"code": "invalid_payload"})
            continue

        if msg.type == "ping":
            await conn.send("pong", {})

        elif msg.type == "subscribe":
            await _handle_subscribe(conn, ctx, msg.data)

        elif msg.type == "unsubscribe":
            await _handle_unsubscribe(conn, msg.data)

        else:
            await conn.send("error", {"code": "unknown_type", "type": msg.type})


async def _handle_subscribe(conn: LiveConnection, ctx: AppContext, data: dict) -> None:
    try:
        frame = SubscribeFrame.model_validate(data)
        stream, encode = _open_stream(frame, conn.user_id, ctx)
    except (ValidationError, ValueError) as exc:
        await conn.send("error", {"code": "invalid_data", "detail": str(exc)})
        return
    except AppError as exc:
        await conn.send("error", {"code": "invalid_data", "detail": exc.detail})
        return

    await conn.send("subscribed", {"id": frame.id, "topic": frame.topic})
    await conn.subscribe(frame.id, stream, encode)


async def _handle_unsubscribe(conn: LiveConnection, data: dict) -> None:
    try:
        frame = UnsubscribeFrame.model_validate(data)
    except ValidationError as exc:
        await conn.send("error", {"code": "invalid_data", "detail": str(exc)})
        return
    closed = await conn.unsubscribe(frame.id)
    await conn.send("unsubscribed", {"id": frame.id, "found": closed})
