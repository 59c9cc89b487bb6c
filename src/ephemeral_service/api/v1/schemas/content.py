from __future__ import annotations

from pydantic import BaseModel, Field

from ephemeral_service.domain.value_objects.enums import MediaType


class BroadcastRequest(BaseModel):
    text: str


class SnapRequest(BaseModel):
    media_url: str = Field(min_length=1)
    media_type: MediaType = MediaType.PHOTO
    caption: str | None = None
    is_story: bool = False


class CreatedResponse(BaseModel):
    id: str
