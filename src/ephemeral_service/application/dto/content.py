from __future__ import annotations

from dataclasses import dataclass

from ephemeral_service.domain.value_objects.enums import MediaType


@dataclass(frozen=True, slots=True)
class BroadcastPayload:
    text: str


@dataclass(frozen=True, slots=True)
class SnapPayload:
    media_url: str
    media_type: MediaType = MediaType.PHOTO
    caption: str | None = None
    is_story: bool = False
