"""FCM HTTP v1 push transport.

  POST {base_url}/v1/projects/{project_id}/messages:send
  Authorization: Bearer {access_token}
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from ephemeral_service.application.dto.notification import PushNotification
from ephemeral_service.application.exceptions import DispatchError
from ephemeral_service.domain.value_objects.enums import DeliveryErrorKind

logger = logging.getLogger(__name__)

_FCM_ERROR_CODES: dict[str, DeliveryErrorKind] = {
    "UNREGISTERED": DeliveryErrorKind.UNREGISTERED,
    "INVALID_ARGUMENT": DeliveryErrorKind.INVALID_TOKEN,
    "SENDER_ID_MISMATCH": DeliveryErrorKind.INVALID_TOKEN,
    "QUOTA_EXCEEDED": DeliveryErrorKind.QUOTA_EXCEEDED,
    "UNAVAILABLE": DeliveryErrorKind.UNAVAILABLE,
    "INTERNAL": DeliveryErrorKind.UNAVAILABLE,
}


def classify_error(status_code: int, body: Any) -> DeliveryErrorKind:
    """Map an FCM error response onto a delivery error kind."""
    error = body.get("error", {}) if isinstance(body, dict) else {}
    for detail in error.get("details", []) or []:
        code = detail.get("errorCode") if isinstance(detail, dict) else None
        if code in _FCM_ERROR_CODES:
            return _FCM_ERROR_CODES[code]
    if status_code == 404:
        return DeliveryErrorKind.UNREGISTERED
    if status_code == 400:
        return DeliveryErrorKind.INVALID_TOKEN
    if status_code == 429:
        return DeliveryErrorKind.QUOTA_EXCEEDED
    if status_code >= 500:
        return DeliveryErrorKind.UNAVAILABLE
    return DeliveryErrorKind.UNKNOWN


class FcmHttpSender:
    """Implements application.ports.push.PushSender on top of httpx."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        project_id: str,
        access_token: str,
        base_url: str = "https://fcm.googleapis.com",
    ) -> None:
        self._client = client
        self._url = f"{base_url.rstrip('/')}/v1/projects/{project_id}/messages:send"
        self._access_token = access_token

    async def send(self, token: str, notification: PushNotification) -> None:
        payload = {
            "message": {
                "token": token,
                "notification": {"title": notification.title, "body": notification.body},
                "data": notification.data,
            }
        }
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        try:
            resp = await self._client.post(self._url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise DispatchError(DeliveryErrorKind.TIMEOUT, str(exc)) from exc
        except httpx.HTTPError as exc:
            raise DispatchError(DeliveryErrorKind.TRANSPORT, str(exc)) from exc

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            kind = classify_error(resp.status_code, body)
            raise DispatchError(kind, f"FCM {resp.status_code}: {resp.text[:300]}")
