from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from ephemeral_service.domain.value_objects.enums import ContentKind


@dataclass(frozen=True, slots=True)
class Snap:
    """A photo/video post. Stories are snaps with ``is_story`` set."""

    kind: ClassVar[ContentKind] = ContentKind.SNAP

    id: str
    owner_id: str
    media_url: str
    media_type: str
    caption: str | None
    is_story: bool
    created_at: datetime
    expires_at: datetime
