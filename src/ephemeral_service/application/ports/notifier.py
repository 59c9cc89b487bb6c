from __future__ import annotations

from typing import Protocol

from ephemeral_service.domain.entities.content import EphemeralContent


class ContentNotifier(Protocol):
    def content_created(self, content: EphemeralContent) -> None:
        """Schedule push delivery for new content without blocking the caller."""
        ...
