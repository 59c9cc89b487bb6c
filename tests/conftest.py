"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Sequence

import pytest

from ephemeral_service.application.context import AppContext
from ephemeral_service.application.dto.notification import PushNotification
from ephemeral_service.application.dto.principal import Principal
from ephemeral_service.application.exceptions import DispatchError
from ephemeral_service.application.mappers import (
    broadcast_to_document,
    message_to_document,
    snap_to_document,
)
from ephemeral_service.application.policies import conversation, ttl
from ephemeral_service.application.ports.store import (
    MAX_BATCH_SIZE,
    Document,
    FieldFilter,
    OrderBy,
)
from ephemeral_service.domain.entities.broadcast import Broadcast
from ephemeral_service.domain.entities.follower import Follower
from ephemeral_service.domain.entities.message import Message
from ephemeral_service.domain.entities.snap import Snap
from ephemeral_service.domain.value_objects.enums import ContentKind, DeliveryErrorKind

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@dataclass
class FakeClock:
    current: datetime = T0

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current += timedelta(**delta)
        return self.current


class InMemoryContentStore:
    """Dict-backed ContentStore with change notification and failure injection."""

    max_batch_size = MAX_BATCH_SIZE

    def __init__(self) -> None:
        self.docs: dict[ContentKind, dict[str, Document]] = defaultdict(dict)
        self.failures: dict[tuple[str, ContentKind | None], Exception] = {}
        self.calls: list[tuple[str, ContentKind]] = []
        self.subscriptions_opened = 0
        self.subscriptions_closed = 0
        self._listeners: dict[ContentKind, list[asyncio.Queue[None]]] = defaultdict(list)

    def fail(self, op: str, exc: Exception, kind: ContentKind | None = None) -> None:
        self.failures[(op, kind)] = exc

    def heal(self) -> None:
        self.failures.clear()

    def _check(self, op: str, kind: ContentKind) -> None:
        self.calls.append((op, kind))
        exc = self.failures.get((op, kind)) or self.failures.get((op, None))
        if exc is not None:
            raise exc

    def _notify(self, kind: ContentKind) -> None:
        for queue in self._listeners[kind]:
            queue.put_nowait(None)

    @property
    def open_subscriptions(self) -> int:
        return self.subscriptions_opened - self.subscriptions_closed

    def insert(self, kind: ContentKind, doc: Document) -> str:
        """Seed a document directly, bypassing failure injection."""
        content_id = doc.get("id") or uuid.uuid4().hex
        self.docs[kind][content_id] = {**doc, "id": content_id}
        self._notify(kind)
        return content_id

    async def create(self, kind: ContentKind, record: Document) -> str:
        self._check("create", kind)
        return self.insert(kind, {k: v for k, v in record.items() if k != "id"})

    async def get_by_id(self, kind: ContentKind, content_id: str) -> Document | None:
        self._check("get_by_id", kind)
        doc = self.docs[kind].get(content_id)
        return dict(doc) if doc is not None else None

    async def query(
        self,
        kind: ContentKind,
        filters: Sequence[FieldFilter],
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        self._check("query", kind)
        docs = [dict(d) for d in self.docs[kind].values() if all(f.matches(d) for f in filters)]
        docs.sort(key=lambda d: d["id"])
        if order_by is not None:
            docs.sort(key=lambda d: d[order_by.field], reverse=order_by.descending)
        return docs[:limit] if limit is not None else docs

    async def subscribe(
        self,
        kind: ContentKind,
        filters: Sequence[FieldFilter],
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> AsyncIterator[list[Document]]:
        queue: asyncio.Queue[None] = asyncio.Queue()
        self._listeners[kind].append(queue)
        self.subscriptions_opened += 1
        try:
            while True:
                yield await self.query(kind, filters, order_by, limit)
                await queue.get()
                while not queue.empty():
                    queue.get_nowait()
        finally:
            self._listeners[kind].remove(queue)
            self.subscriptions_closed += 1

    async def update_field(self, kind: ContentKind, content_id: str, field: str, value: Any) -> None:
        self._check("update_field", kind)
        doc = self.docs[kind].get(content_id)
        if doc is not None:
            doc[field] = value
            self._notify(kind)

    async def batch_delete(self, kind: ContentKind, ids: Sequence[str]) -> None:
        self._check("batch_delete", kind)
        if len(ids) > self.max_batch_size:
            raise ValueError(f"batch of {len(ids)} exceeds max {self.max_batch_size}")
        for content_id in ids:
            self.docs[kind].pop(content_id, None)
        if ids:
            self._notify(kind)

    async def ping(self) -> None:
        self._check("ping", ContentKind.MESSAGE)


@dataclass
class FakeRecipientDirectory:
    followers: dict[str, list[Follower]] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)
    names: dict[str, str] = field(default_factory=dict)
    pruned: list[str] = field(default_factory=list)
    forgotten: list[str] = field(default_factory=list)

    async def get_followers(self, owner_id: str) -> list[Follower]:
        return list(self.followers.get(owner_id, []))

    async def get_token(self, user_id: str) -> str | None:
        return self.tokens.get(user_id)

    async def get_display_name(self, user_id: str) -> str | None:
        return self.names.get(user_id)

    async def prune_tokens(self, tokens: Sequence[str]) -> int:
        self.pruned.extend(tokens)
        return len(tokens)

    async def forget_user(self, user_id: str) -> None:
        self.forgotten.append(user_id)
        self.tokens.pop(user_id, None)
        self.followers.pop(user_id, None)
        for owner_id, followers in self.followers.items():
            self.followers[owner_id] = [f for f in followers if f.id != user_id]


@dataclass
class FakePushSender:
    """Records sends; ``errors`` fail a token, ``hang`` never answers."""

    errors: dict[str, DeliveryErrorKind] = field(default_factory=dict)
    hang: set[str] = field(default_factory=set)
    crash: set[str] = field(default_factory=set)
    sent: list[tuple[str, PushNotification]] = field(default_factory=list)

    async def send(self, token: str, notification: PushNotification) -> None:
        if token in self.hang:
            await asyncio.sleep(3600)
        if token in self.crash:
            raise RuntimeError("sender exploded")
        if token in self.errors:
            raise DispatchError(self.errors[token], f"rejected {token}")
        self.sent.append((token, notification))


@dataclass
class RecordingNotifier:
    created: list[Any] = field(default_factory=list)

    def content_created(self, content: Any) -> None:
        self.created.append(content)


def make_message(
    *,
    from_id: str = "alice",
    to_id: str = "bob",
    text: str = "hello",
    created_at: datetime = T0,
    expires_at: datetime | None = None,
    is_read: bool = False,
) -> Document:
    return message_to_document(
        Message(
            id="",
            from_id=from_id,
            to_id=to_id,
            text=text,
            conversation_id=conversation.conversation_id(from_id, to_id),
            participants=conversation.participants(from_id, to_id),
            created_at=created_at,
            expires_at=expires_at or ttl.stamp(ContentKind.MESSAGE, created_at),
            is_read=is_read,
        )
    )


def make_snap(
    *,
    owner_id: str = "vendor1",
    caption: str | None = "fresh kale",
    is_story: bool = False,
    created_at: datetime = T0,
    expires_at: datetime | None = None,
) -> Document:
    return snap_to_document(
        Snap(
            id="",
            owner_id=owner_id,
            media_url="https://cdn.example/kale.jpg",
            media_type="photo",
            caption=caption,
            is_story=is_story,
            created_at=created_at,
            expires_at=expires_at or ttl.stamp(ContentKind.SNAP, created_at),
        )
    )


def make_broadcast(
    *,
    owner_id: str = "vendor1",
    text: str = "Sale at noon",
    created_at: datetime = T0,
    expires_at: datetime | None = None,
) -> Document:
    return broadcast_to_document(
        Broadcast(
            id="",
            owner_id=owner_id,
            text=text,
            created_at=created_at,
            expires_at=expires_at or ttl.stamp(ContentKind.BROADCAST, created_at),
        )
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def ctx(store: InMemoryContentStore, clock: FakeClock, notifier: RecordingNotifier) -> AppContext:
    return AppContext(store=store, clock=clock, notifier=notifier, live_view_tick_seconds=0.01)


@pytest.fixture
def directory() -> FakeRecipientDirectory:
    return FakeRecipientDirectory()


@pytest.fixture
def sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def user_principal() -> Principal:
    return Principal(user_id="alice", roles=[])


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(user_id="ops", roles=["admin"])
