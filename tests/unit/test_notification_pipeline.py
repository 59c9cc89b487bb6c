from __future__ import annotations

import pytest

from ephemeral_service.application.context import AppContext
from ephemeral_service.application.dto.content import BroadcastPayload, SnapPayload
from ephemeral_service.application.mappers import document_to_message, document_to_snap
from ephemeral_service.domain.entities.follower import Follower
from ephemeral_service.domain.value_objects.enums import DeliveryErrorKind, NotificationType
from ephemeral_service.services import content_service, message_service
from ephemeral_service.services.fanout import FanoutDispatcher
from ephemeral_service.services.notification_service import NotificationPipeline, build_notification
from tests.conftest import make_message, make_snap


@pytest.fixture
def pipeline(directory, sender) -> NotificationPipeline:
    return NotificationPipeline(directory, FanoutDispatcher(sender, send_timeout=0.5))


@pytest.fixture
def live_ctx(store, clock, pipeline) -> AppContext:
    return AppContext(store=store, clock=clock, notifier=pipeline)


def test_message_notification_uses_sender_name():
    message = document_to_message({**make_message(from_id="alice", text="hey"), "id": "m1"})

    note = build_notification(message, "Alice")

    assert note.title == "New message from Alice"
    assert note.body == "hey"
    assert note.data["type"] == NotificationType.NEW_MESSAGE
    assert note.data["from_id"] == "alice"
    assert note.data["content_id"] == "m1"


def test_snap_notification_falls_back_to_defaults():
    snap = document_to_snap({**make_snap(caption=None), "id": "s1"})

    note = build_notification(snap, None)

    assert note.title == "A Market Vendor has a new Snap!"
    assert note.body == "has posted a new snap!"
    assert note.data["type"] == NotificationType.NEW_SNAP
    assert note.data["vendor_id"] == "vendor1"


@pytest.mark.asyncio
async def test_broadcast_reaches_every_follower(live_ctx, pipeline, directory, sender):
    directory.followers["vendor1"] = [Follower("u1", "tok1"), Follower("u2", "tok2")]
    directory.names["vendor1"] = "Kale Co"

    await content_service.post_broadcast_content("vendor1", BroadcastPayload("Sale at noon"), live_ctx)
    await pipeline.drain()

    assert sorted(token for token, _ in sender.sent) == ["tok1", "tok2"]
    note = sender.sent[0][1]
    assert note.title == "Message from Kale Co"
    assert note.body == "Sale at noon"


@pytest.mark.asyncio
async def test_notify_reports_partial_failure(pipeline, directory, sender):
    directory.followers["vendor1"] = [Follower("u1", "tok1"), Follower("u2", "tok2")]
    sender.errors["tok2"] = DeliveryErrorKind.UNAVAILABLE
    snap = document_to_snap({**make_snap(owner_id="vendor1"), "id": "s1"})

    report = await pipeline.notify(snap)

    assert report.success_count == 1
    assert report.failure_count == 1
    assert report.failed_tokens == ["tok2"]
    # Transient failures keep the token.
    assert directory.pruned == []


@pytest.mark.asyncio
async def test_vendor_without_followers_sends_nothing(live_ctx, pipeline, sender):
    content_id = await content_service.post_broadcast_content(
        "vendor1", BroadcastPayload("Anyone there?"), live_ctx,
    )
    await pipeline.drain()

    assert content_id
    assert sender.sent == []


@pytest.mark.asyncio
async def test_dead_tokens_are_pruned(live_ctx, pipeline, directory, sender):
    directory.followers["vendor1"] = [
        Follower("u1", "tok1"),
        Follower("u2", "gone"),
        Follower("u3", "bad"),
        Follower("u4", "busy"),
    ]
    sender.errors.update(
        gone=DeliveryErrorKind.UNREGISTERED,
        bad=DeliveryErrorKind.INVALID_TOKEN,
        busy=DeliveryErrorKind.QUOTA_EXCEEDED,
    )

    await content_service.post_broadcast_content("vendor1", BroadcastPayload("hi"), live_ctx)
    await pipeline.drain()

    assert sorted(directory.pruned) == ["bad", "gone"]


@pytest.mark.asyncio
async def test_direct_message_notifies_recipient(live_ctx, pipeline, directory, sender):
    directory.tokens["bob"] = "bob-token"
    directory.names["alice"] = "Alice"

    await message_service.send_message("alice", "bob", "lunch?", live_ctx)
    await pipeline.drain()

    assert [(token, note.title) for token, note in sender.sent] == [
        ("bob-token", "New message from Alice"),
    ]


@pytest.mark.asyncio
async def test_pipeline_failure_does_not_reach_the_writer(live_ctx, pipeline, directory, sender):
    async def broken(owner_id):
        raise RuntimeError("directory offline")

    directory.get_followers = broken

    content_id = await content_service.post_broadcast_content("vendor1", BroadcastPayload("hi"), live_ctx)
    await pipeline.drain()

    assert content_id
    assert pipeline.pending == 0
    assert sender.sent == []
