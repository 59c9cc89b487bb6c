from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from ephemeral_service.domain.value_objects.enums import ContentKind


@dataclass(frozen=True, slots=True)
class Broadcast:
    kind: ClassVar[ContentKind] = ContentKind.BROADCAST

    id: str
    owner_id: str
    text: str
    created_at: datetime
    expires_at: datetime
