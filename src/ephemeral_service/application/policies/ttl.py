"""Time-to-live rules for ephemeral content.

``expires_at`` is computed once at creation and persisted; every read path
compares it against the injected clock with :func:`has_expired`.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Mapping

from ephemeral_service.domain.value_objects.enums import ContentKind

MESSAGE_TTL = timedelta(hours=24)
SNAP_TTL = timedelta(hours=24)
BROADCAST_TTL = timedelta(hours=24)

TTL_BY_KIND: Mapping[ContentKind, timedelta] = MappingProxyType(
    {
        ContentKind.MESSAGE: MESSAGE_TTL,
        ContentKind.SNAP: SNAP_TTL,
        ContentKind.BROADCAST: BROADCAST_TTL,
    }
)

EXPIRED_LABEL = "Expired"


def ttl_for(kind: ContentKind) -> timedelta:
    return TTL_BY_KIND[kind]


def stamp(kind: ContentKind, created_at: datetime) -> datetime:
    return created_at + TTL_BY_KIND[kind]


def has_expired(now: datetime, expires_at: datetime) -> bool:
    # Inclusive: at expires_at the record is already gone for every reader.
    return now >= expires_at


def is_live(now: datetime, expires_at: datetime) -> bool:
    return not has_expired(now, expires_at)


def time_remaining(now: datetime, expires_at: datetime) -> timedelta:
    """Signed remaining lifetime; negative once the record has expired."""
    return expires_at - now


def format_remaining(remaining: timedelta) -> str:
    if remaining <= timedelta(0):
        return EXPIRED_LABEL
    hours, rest = divmod(int(remaining.total_seconds()), 3600)
    if hours > 0:
        return f"{hours}h"
    minutes = rest // 60
    if minutes > 0:
        return f"{minutes}m"
    return "<1m"
