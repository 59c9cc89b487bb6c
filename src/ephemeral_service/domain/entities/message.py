from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from ephemeral_service.domain.value_objects.enums import ContentKind


@dataclass(frozen=True, slots=True)
class Message:
    kind: ClassVar[ContentKind] = ContentKind.MESSAGE

    id: str
    from_id: str
    to_id: str
    text: str
    conversation_id: str
    participants: tuple[str, str]
    created_at: datetime
    expires_at: datetime
    is_read: bool = False

    @property
    def owner_id(self) -> str:
        return self.from_id

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants
