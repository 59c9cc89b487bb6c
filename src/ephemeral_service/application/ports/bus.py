from __future__ import annotations

from typing import AsyncIterator, Protocol

from ephemeral_service.domain.value_objects.enums import ContentKind


class ChangeFeed(Protocol):
    """Out-of-band signal that a content kind was written to."""

    async def publish_change(self, kind: ContentKind, op: str, ids: list[str]) -> None: ...

    def listen(self, kind: ContentKind) -> AsyncIterator[None]: ...
