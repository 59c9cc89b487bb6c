from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import AsyncIterator

from ephemeral_service.application.context import AppContext
from ephemeral_service.application.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from ephemeral_service.application.mappers import document_to_message, message_to_document
from ephemeral_service.application.pagination import decode_cursor, encode_cursor
from ephemeral_service.application.policies import conversation, ttl
from ephemeral_service.application.ports.store import FieldFilter, FilterOp
from ephemeral_service.domain.entities.message import Message
from ephemeral_service.domain.value_objects.enums import ContentKind
from ephemeral_service.services.live_view import NEWEST_FIRST, LiveView, filter_live, live_filters

logger = logging.getLogger(__name__)

KIND = ContentKind.MESSAGE

# Conversation lists fetch extra rows so grouping still fills the page.
CONVERSATION_FETCH_FACTOR = 5


@dataclass(frozen=True, slots=True)
class MessagePage:
    messages: list[Message]
    next_cursor: str | None


def _preview(text: str) -> str:
    return text if len(text) <= 50 else f"{text[:50]}..."


async def send_message(from_id: str, to_id: str, text: str, ctx: AppContext) -> str:
    """Persist a direct message and schedule the recipient's push notification.

    Returns the new message id. Validation happens before any write.
    """
    if not text or not text.strip():
        raise InvalidArgumentError("Message text cannot be empty")
    if len(text) > ctx.message_max_length:
        raise InvalidArgumentError(
            f"Message text too long (max {ctx.message_max_length} characters)"
        )
    if from_id == to_id:
        raise InvalidArgumentError("Cannot send message to yourself")

    pair = conversation.participants(from_id, to_id)
    created_at = ctx.clock.now()
    draft = Message(
        id="",
        from_id=from_id,
        to_id=to_id,
        text=text.strip(),
        conversation_id=conversation.conversation_id(from_id, to_id),
        participants=pair,
        created_at=created_at,
        expires_at=ttl.stamp(KIND, created_at),
    )
    message_id = await ctx.store.create(KIND, message_to_document(draft))
    logger.info(
        "Message %s sent %s -> %s: %r", message_id, from_id, to_id, _preview(draft.text),
    )

    if ctx.notifier is not None:
        ctx.notifier.content_created(replace(draft, id=message_id))
    return message_id


async def get_message(message_id: str, ctx: AppContext) -> Message:
    """Fetch one live message. Missing and expired are indistinguishable."""
    doc = await ctx.store.get_by_id(KIND, message_id)
    if doc is None:
        logger.debug("Message %s not found", message_id)
        raise NotFoundError("Message not found")
    message = document_to_message(doc)
    if ttl.has_expired(ctx.clock.now(), message.expires_at):
        logger.debug("Message %s has expired", message_id)
        raise NotFoundError("Message not found")
    return message


async def mark_message_read(message_id: str, user_id: str, ctx: AppContext) -> Message:
    message = await get_message(message_id, ctx)
    if message.to_id != user_id:
        raise ForbiddenError("Only the recipient can mark a message as read")
    if not message.is_read:
        await ctx.store.update_field(KIND, message_id, "is_read", True)
    return replace(message, is_read=True)


async def mark_conversation_read(
    user_a: str, user_b: str, current_user: str, ctx: AppContext,
) -> int:
    """Mark every live unread message addressed to ``current_user`` as read."""
    pair = conversation.participants(user_a, user_b)
    if current_user not in pair:
        raise ForbiddenError("Not a participant of this conversation")

    now = ctx.clock.now()
    docs = await ctx.store.query(
        KIND,
        live_filters(
            [
                FieldFilter("participants", FilterOp.EQ, list(pair)),
                FieldFilter("to_id", FilterOp.EQ, current_user),
                FieldFilter("is_read", FilterOp.EQ, False),
            ],
            now,
        ),
    )
    unread = filter_live([document_to_message(d) for d in docs], now)
    for message in unread:
        await ctx.store.update_field(KIND, message.id, "is_read", True)
    logger.info(
        "Marked %d messages read in %s for %s",
        len(unread), conversation.conversation_id(user_a, user_b), current_user,
    )
    return len(unread)


async def list_conversation_page(
    user_a: str,
    user_b: str,
    ctx: AppContext,
    cursor: str | None = None,
    limit: int = 50,
) -> MessagePage:
    """One-shot, newest-first page of live messages between two users."""
    pair = conversation.participants(user_a, user_b)
    filters = [FieldFilter("participants", FilterOp.EQ, list(pair))]
    after: tuple | None = None
    if cursor:
        ts, last_id = decode_cursor(cursor)
        filters.append(FieldFilter("created_at", FilterOp.LTE, ts))
        after = (ts, last_id)

    now = ctx.clock.now()
    # Rows sharing the cursor timestamp are re-read; over-fetch so they can be dropped.
    docs = await ctx.store.query(
        KIND, live_filters(filters, now), NEWEST_FIRST, limit + 1 + (limit if after else 0),
    )
    messages = filter_live([document_to_message(d) for d in docs], now)
    if after is not None:
        ts, last_id = after
        messages = [m for m in messages if m.created_at < ts or (m.created_at == ts and m.id > last_id)]

    page = messages[:limit]
    next_cursor = None
    if len(messages) > limit:
        tail = page[-1]
        next_cursor = encode_cursor(tail.created_at, tail.id)
    return MessagePage(messages=page, next_cursor=next_cursor)


def subscribe_conversation(
    user_a: str, user_b: str, ctx: AppContext, limit: int = 50,
) -> AsyncIterator[list[Message]]:
    pair = conversation.participants(user_a, user_b)
    view: LiveView[list[Message]] = LiveView(
        ctx.store,
        ctx.clock,
        KIND,
        [FieldFilter("participants", FilterOp.EQ, list(pair))],
        lambda live: live[:limit],
        limit=limit,
        tick_seconds=ctx.live_view_tick_seconds,
    )
    return view.stream()


def latest_per_conversation(messages: list[Message], limit: int) -> list[Message]:
    """Newest message of each conversation, newest conversation first.

    ``messages`` must already be ordered newest first.
    """
    latest: dict[str, Message] = {}
    for message in messages:
        latest.setdefault(message.conversation_id, message)
    return list(latest.values())[:limit]


def subscribe_user_conversations(
    user_id: str, ctx: AppContext, limit: int = 20,
) -> AsyncIterator[list[Message]]:
    if not user_id:
        raise InvalidArgumentError("User id must not be empty")
    view: LiveView[list[Message]] = LiveView(
        ctx.store,
        ctx.clock,
        KIND,
        [FieldFilter("participants", FilterOp.CONTAINS, user_id)],
        lambda live: latest_per_conversation(live, limit),
        limit=limit * CONVERSATION_FETCH_FACTOR,
        tick_seconds=ctx.live_view_tick_seconds,
    )
    return view.stream()


def subscribe_unread_count(user_id: str, ctx: AppContext) -> AsyncIterator[int]:
    if not user_id:
        raise InvalidArgumentError("User id must not be empty")
    view: LiveView[int] = LiveView(
        ctx.store,
        ctx.clock,
        KIND,
        [
            FieldFilter("to_id", FilterOp.EQ, user_id),
            FieldFilter("is_read", FilterOp.EQ, False),
        ],
        lambda live: sum(1 for m in live if m.to_id == user_id and not m.is_read),
        order_by=None,
        tick_seconds=ctx.live_view_tick_seconds,
    )
    return view.stream()
