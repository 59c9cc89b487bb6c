from __future__ import annotations

import logging
from dataclasses import replace
from typing import AsyncIterator

from ephemeral_service.application.context import AppContext
from ephemeral_service.application.dto.content import BroadcastPayload, SnapPayload
from ephemeral_service.application.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from ephemeral_service.application.mappers import (
    broadcast_to_document,
    document_to_content,
    snap_to_document,
)
from ephemeral_service.application.policies import ttl
from ephemeral_service.application.ports.store import FieldFilter, FilterOp
from ephemeral_service.domain.entities.broadcast import Broadcast
from ephemeral_service.domain.entities.content import EphemeralContent
from ephemeral_service.domain.entities.snap import Snap
from ephemeral_service.domain.value_objects.enums import ContentKind
from ephemeral_service.services.live_view import LiveView

logger = logging.getLogger(__name__)


async def post_broadcast_content(
    owner_id: str,
    payload: BroadcastPayload | SnapPayload,
    ctx: AppContext,
) -> str:
    """Persist a broadcast or snap/story and schedule the follower fan-out."""
    if not owner_id:
        raise InvalidArgumentError("Owner id must not be empty")

    created_at = ctx.clock.now()
    content: EphemeralContent
    if isinstance(payload, BroadcastPayload):
        text = payload.text.strip()
        if not text:
            raise InvalidArgumentError("Broadcast message cannot be empty")
        if len(text) > ctx.broadcast_max_length:
            raise InvalidArgumentError(
                f"Broadcast message must be {ctx.broadcast_max_length} characters or less"
            )
        content = Broadcast(
            id="",
            owner_id=owner_id,
            text=text,
            created_at=created_at,
            expires_at=ttl.stamp(ContentKind.BROADCAST, created_at),
        )
        document = broadcast_to_document(content)
    elif isinstance(payload, SnapPayload):
        if not payload.media_url.strip():
            raise InvalidArgumentError("Snap media url cannot be empty")
        caption = payload.caption.strip() if payload.caption else None
        content = Snap(
            id="",
            owner_id=owner_id,
            media_url=payload.media_url.strip(),
            media_type=payload.media_type.value,
            caption=caption or None,
            is_story=payload.is_story,
            created_at=created_at,
            expires_at=ttl.stamp(ContentKind.SNAP, created_at),
        )
        document = snap_to_document(content)
    else:
        raise InvalidArgumentError(f"Unsupported payload: {type(payload).__name__}")

    content_id = await ctx.store.create(content.kind, document)
    content = replace(content, id=content_id)
    logger.info("%s %s posted by %s", content.kind, content_id, owner_id)

    if ctx.notifier is not None:
        ctx.notifier.content_created(content)
    return content_id


async def delete_content(
    kind: ContentKind, content_id: str, owner_id: str, ctx: AppContext,
) -> None:
    """Owner-initiated removal of a snap/story or broadcast before it expires."""
    if kind == ContentKind.MESSAGE:
        raise InvalidArgumentError("Messages cannot be deleted individually")
    doc = await ctx.store.get_by_id(kind, content_id)
    if doc is None:
        raise NotFoundError(f"{kind.capitalize()} not found")
    content = document_to_content(kind, doc)
    if ttl.has_expired(ctx.clock.now(), content.expires_at):
        raise NotFoundError(f"{kind.capitalize()} not found")
    if content.owner_id != owner_id:
        raise ForbiddenError(f"Only the creator can delete this {kind}")

    await ctx.store.batch_delete(kind, [content_id])
    logger.info("%s %s deleted by %s", kind, content_id, owner_id)


def subscribe_feed(
    ctx: AppContext,
    owner_id: str | None = None,
    stories_only: bool = False,
    limit: int = 20,
) -> AsyncIterator[list[Snap]]:
    filters: list[FieldFilter] = []
    if owner_id:
        filters.append(FieldFilter("owner_id", FilterOp.EQ, owner_id))
    if stories_only:
        filters.append(FieldFilter("is_story", FilterOp.EQ, True))
    view: LiveView[list[Snap]] = LiveView(
        ctx.store,
        ctx.clock,
        ContentKind.SNAP,
        filters,
        lambda live: live[:limit],
        limit=limit,
        tick_seconds=ctx.live_view_tick_seconds,
    )
    return view.stream()


def subscribe_broadcasts(
    ctx: AppContext,
    owner_id: str | None = None,
    limit: int = 50,
) -> AsyncIterator[list[Broadcast]]:
    filters: list[FieldFilter] = []
    if owner_id:
        filters.append(FieldFilter("owner_id", FilterOp.EQ, owner_id))
    view: LiveView[list[Broadcast]] = LiveView(
        ctx.store,
        ctx.clock,
        ContentKind.BROADCAST,
        filters,
        lambda live: live[:limit],
        limit=limit,
        tick_seconds=ctx.live_view_tick_seconds,
    )
    return view.stream()
