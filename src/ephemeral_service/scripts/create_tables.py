"""One-time script: create the content, profile and follower tables."""
from __future__ import annotations

import asyncio
import logging

from ephemeral_service.infrastructure.db.base import Base
from ephemeral_service.infrastructure.db.models import ContentModel, FollowerModel, UserProfileModel
from ephemeral_service.infrastructure.db.session import engine

logger = logging.getLogger(__name__)


async def create_tables() -> None:
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Tables ready: %s",
            ", ".join(m.__tablename__ for m in (ContentModel, UserProfileModel, FollowerModel)),
        )
    finally:
        await engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_tables())


if __name__ == "__main__":
    main()
