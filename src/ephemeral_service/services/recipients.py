from __future__ import annotations

import logging

from ephemeral_service.application.ports.recipients import RecipientDirectory
from ephemeral_service.domain.entities.content import EphemeralContent
from ephemeral_service.domain.entities.message import Message

logger = logging.getLogger(__name__)


def mask_token(token: str) -> str:
    return f"{token[:10]}..."


class RecipientResolver:
    """Turns new content into the push tokens of its audience."""

    def __init__(self, directory: RecipientDirectory) -> None:
        self._directory = directory

    async def resolve(self, content: EphemeralContent) -> list[str]:
        if isinstance(content, Message):
            token = await self.resolve_direct(content.to_id)
            return [token] if token else []
        return await self.resolve_followers(content.owner_id)

    async def resolve_followers(self, owner_id: str) -> list[str]:
        followers = await self._directory.get_followers(owner_id)
        if not followers:
            logger.info("No followers found for %s", owner_id)
            return []

        tokens: list[str] = []
        seen: set[str] = set()
        for follower in followers:
            if not follower.token:
                logger.warning("Follower %s of %s is missing a push token", follower.id, owner_id)
                continue
            if follower.token in seen:
                continue
            seen.add(follower.token)
            tokens.append(follower.token)

        logger.info("Resolved %d tokens for followers of %s", len(tokens), owner_id)
        return tokens

    async def resolve_direct(self, user_id: str) -> str | None:
        token = await self._directory.get_token(user_id)
        if not token:
            logger.warning("Recipient %s has no push token, cannot notify", user_id)
            return None
        logger.debug("Found push token for %s: %s", user_id, mask_token(token))
        return token
