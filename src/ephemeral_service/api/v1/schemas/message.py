from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ephemeral_service.application.policies.ttl import format_remaining, time_remaining
from ephemeral_service.domain.entities.message import Message


class SendMessageRequest(BaseModel):
    to_id: str = Field(min_length=1)
    text: str


class MessageResponse(BaseModel):
    id: str
    from_id: str
    to_id: str
    text: str
    conversation_id: str
    participants: list[str]
    created_at: datetime
    expires_at: datetime
    is_read: bool
    expires_in: str

    @classmethod
    def from_entity(cls, message: Message, now: datetime) -> MessageResponse:
        return cls(
            id=message.id,
            from_id=message.from_id,
            to_id=message.to_id,
            text=message.text,
            conversation_id=message.conversation_id,
            participants=list(message.participants),
            created_at=message.created_at,
            expires_at=message.expires_at,
            is_read=message.is_read,
            expires_in=format_remaining(time_remaining(now, message.expires_at)),
        )


class MessagePageResponse(BaseModel):
    messages: list[MessageResponse]
    next_cursor: str | None = None


class MarkReadResponse(BaseModel):
    updated: int
