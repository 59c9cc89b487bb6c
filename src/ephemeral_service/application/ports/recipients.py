from __future__ import annotations

from typing import Protocol, Sequence

from ephemeral_service.domain.entities.follower import Follower


class RecipientDirectory(Protocol):
    async def get_followers(self, owner_id: str) -> list[Follower]: ...

    async def get_token(self, user_id: str) -> str | None: ...

    async def get_display_name(self, user_id: str) -> str | None: ...

    async def prune_tokens(self, tokens: Sequence[str]) -> int:
        """Forget tokens the push provider reported as dead. Returns how many were removed."""
        ...

    async def forget_user(self, user_id: str) -> None:
        """Drop the user's follow edges in both directions and clear their push token."""
        ...
