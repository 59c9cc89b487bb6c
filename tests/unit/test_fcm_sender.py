from __future__ import annotations

import json

import httpx
import pytest

from ephemeral_service.application.dto.notification import PushNotification
from ephemeral_service.application.exceptions import DispatchError
from ephemeral_service.domain.value_objects.enums import DeliveryErrorKind
from ephemeral_service.infrastructure.push.fcm_sender import FcmHttpSender, classify_error

NOTE = PushNotification(title="New message from Alice", body="hi", data={"type": "new_message"})


def _sender(handler) -> tuple[FcmHttpSender, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FcmHttpSender(client, "market-snap", "secret-token", "https://fcm.test"), client


@pytest.mark.asyncio
async def test_send_posts_fcm_v1_message():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"name": "projects/market-snap/messages/1"})

    sender, client = _sender(handler)
    async with client:
        await sender.send("device-token", NOTE)

    request = seen[0]
    assert str(request.url) == "https://fcm.test/v1/projects/market-snap/messages:send"
    assert request.headers["Authorization"] == "Bearer secret-token"
    body = json.loads(request.content)
    assert body["message"]["token"] == "device-token"
    assert body["message"]["notification"] == {"title": "New message from Alice", "body": "hi"}
    assert body["message"]["data"] == {"type": "new_message"}


@pytest.mark.asyncio
async def test_unregistered_token_is_classified():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404,
            json={"error": {"status": "NOT_FOUND", "details": [{"errorCode": "UNREGISTERED"}]}},
        )

    sender, client = _sender(handler)
    async with client:
        with pytest.raises(DispatchError) as exc_info:
            await sender.send("stale", NOTE)

    assert exc_info.value.kind == DeliveryErrorKind.UNREGISTERED


@pytest.mark.asyncio
async def test_transport_failure_is_classified():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    sender, client = _sender(handler)
    async with client:
        with pytest.raises(DispatchError) as exc_info:
            await sender.send("tok", NOTE)

    assert exc_info.value.kind == DeliveryErrorKind.TRANSPORT


@pytest.mark.parametrize(
    ("status", "body", "kind"),
    [
        (400, {"error": {"details": [{"errorCode": "INVALID_ARGUMENT"}]}}, DeliveryErrorKind.INVALID_TOKEN),
        (429, None, DeliveryErrorKind.QUOTA_EXCEEDED),
        (503, "not json", DeliveryErrorKind.UNAVAILABLE),
        (404, {}, DeliveryErrorKind.UNREGISTERED),
        (401, {}, DeliveryErrorKind.UNKNOWN),
    ],
)
def test_classify_error(status, body, kind):
    assert classify_error(status, body) == kind
