"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # subscribe | unsubscribe | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # subscribed | snapshot | unsubscribed | error | pong
    data: dict[str, Any] = {}


class SubscribeFrame(BaseModel):
    id: str
    topic: str  # conversation | conversations | unread_count
    other_id: str | None = None
    limit: int | None = None


class UnsubscribeFrame(BaseModel):
    id: str
