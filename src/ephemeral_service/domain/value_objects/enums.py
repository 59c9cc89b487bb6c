from __future__ import annotations

from enum import StrEnum


class ContentKind(StrEnum):
    MESSAGE = "message"
    SNAP = "snap"
    BROADCAST = "broadcast"


class MediaType(StrEnum):
    PHOTO = "photo"
    VIDEO = "video"


class NotificationType(StrEnum):
    NEW_MESSAGE = "new_message"
    NEW_SNAP = "new_snap"
    NEW_BROADCAST = "new_broadcast"


class DeliveryErrorKind(StrEnum):
    INVALID_TOKEN = "invalid_token"
    UNREGISTERED = "unregistered"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"
