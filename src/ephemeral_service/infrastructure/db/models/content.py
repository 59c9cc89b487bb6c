from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Index, String
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from ephemeral_service.infrastructure.db.base import Base


class ContentModel(Base):
    """Every ephemeral content kind in one table.

    Fields that are filtered or ordered on are real columns; the rest of the
    document lives in ``body``.
    """

    __tablename__ = "ephemeral_content"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    to_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    conversation_id: Mapped[str | None] = mapped_column(String(260), nullable=True)
    participants: Mapped[list[str] | None] = mapped_column(ARRAY(String(128)), nullable=True)
    is_read: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    body: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_content_kind_expires", "kind", "expires_at"),
        Index("ix_content_kind_owner", "kind", "owner_id"),
        Index("ix_content_conversation_timeline", "kind", "conversation_id", "created_at", "id"),
        Index("ix_content_unread", "kind", "to_id", "is_read"),
        Index("ix_content_participants", "participants", postgresql_using="gin"),
    )
