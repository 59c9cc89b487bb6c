from __future__ import annotations

from typing import Sequence

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ephemeral_service.application.exceptions import StoreError
from ephemeral_service.domain.entities.follower import Follower
from ephemeral_service.infrastructure.db.models.recipient import FollowerModel, UserProfileModel


class SqlAlchemyRecipientDirectory:
    """Followers and push tokens kept next to the content tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_followers(self, owner_id: str) -> list[Follower]:
        stmt = (
            select(FollowerModel.follower_id, UserProfileModel.push_token)
            .outerjoin(UserProfileModel, UserProfileModel.user_id == FollowerModel.follower_id)
            .where(FollowerModel.vendor_id == owner_id)
            .order_by(FollowerModel.created_at.asc())
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"followers of {owner_id}: {exc}") from exc
        return [Follower(id=follower_id, token=token) for follower_id, token in rows]

    async def get_token(self, user_id: str) -> str | None:
        profile = await self._profile(user_id)
        return profile.push_token if profile else None

    async def get_display_name(self, user_id: str) -> str | None:
        profile = await self._profile(user_id)
        return profile.display_name if profile else None

    async def prune_tokens(self, tokens: Sequence[str]) -> int:
        if not tokens:
            return 0
        stmt = (
            update(UserProfileModel)
            .where(UserProfileModel.push_token.in_(list(tokens)))
            .values(push_token=None)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"prune tokens: {exc}") from exc
        return result.rowcount or 0

    async def forget_user(self, user_id: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(FollowerModel).where(
                        or_(FollowerModel.vendor_id == user_id, FollowerModel.follower_id == user_id)
                    )
                )
                await session.execute(
                    update(UserProfileModel)
                    .where(UserProfileModel.user_id == user_id)
                    .values(push_token=None)
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"forget user {user_id}: {exc}") from exc

    async def _profile(self, user_id: str) -> UserProfileModel | None:
        try:
            async with self._session_factory() as session:
                return await session.get(UserProfileModel, user_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"profile {user_id}: {exc}") from exc
