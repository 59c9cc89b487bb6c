"""PostgreSQL implementation of the ``ContentStore`` port."""
from __future__ import annotations

import logging
import uuid
from typing import Any, AsyncIterator, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from ephemeral_service.application.exceptions import StoreError
from ephemeral_service.application.ports.bus import ChangeFeed
from ephemeral_service.application.ports.store import (
    MAX_BATCH_SIZE,
    Document,
    FieldFilter,
    FilterOp,
    OrderBy,
)
from ephemeral_service.domain.value_objects.enums import ContentKind
from ephemeral_service.infrastructure.db.models.content import ContentModel

logger = logging.getLogger(__name__)

COLUMNS = frozenset(
    {"owner_id", "to_id", "conversation_id", "participants", "is_read", "created_at", "expires_at"}
)


def document_to_row(content_id: str, kind: ContentKind, record: Document) -> ContentModel:
    return ContentModel(
        id=content_id,
        kind=kind.value,
        owner_id=record["owner_id"],
        to_id=record.get("to_id"),
        conversation_id=record.get("conversation_id"),
        participants=record.get("participants"),
        is_read=record.get("is_read"),
        body={k: v for k, v in record.items() if k not in COLUMNS and k != "id"},
        created_at=record["created_at"],
        expires_at=record["expires_at"],
    )


def row_to_document(row: ContentModel) -> Document:
    doc: Document = dict(row.body or {})
    doc["id"] = row.id
    doc["owner_id"] = row.owner_id
    doc["created_at"] = row.created_at
    doc["expires_at"] = row.expires_at
    for name in ("to_id", "conversation_id", "participants", "is_read"):
        value = getattr(row, name)
        if value is not None:
            doc[name] = list(value) if name == "participants" else value
    return doc


def _condition(flt: FieldFilter) -> ColumnElement[bool]:
    if flt.field not in COLUMNS:
        if flt.op != FilterOp.EQ:
            raise ValueError(f"Only equality is supported on non-indexed field {flt.field!r}")
        return ContentModel.body.contains({flt.field: flt.value})

    column = getattr(ContentModel, flt.field)
    if flt.op == FilterOp.EQ:
        return column == flt.value
    if flt.op == FilterOp.CONTAINS:
        return column.contains([flt.value])
    if flt.op == FilterOp.LT:
        return column < flt.value
    if flt.op == FilterOp.LTE:
        return column <= flt.value
    return column > flt.value


class SqlAlchemyContentStore:
    """Each call runs in its own session; writes are announced on the change feed."""

    max_batch_size = MAX_BATCH_SIZE

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        change_feed: ChangeFeed,
    ) -> None:
        self._session_factory = session_factory
        self._feed = change_feed

    async def create(self, kind: ContentKind, record: Document) -> str:
        content_id = uuid.uuid4().hex
        try:
            async with self._session_factory() as session:
                session.add(document_to_row(content_id, kind, record))
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"create {kind} failed: {exc}") from exc
        await self._announce(kind, "created", [content_id])
        return content_id

    async def get_by_id(self, kind: ContentKind, content_id: str) -> Document | None:
        stmt = select(ContentModel).where(
            ContentModel.kind == kind.value, ContentModel.id == content_id,
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"get {kind} {content_id} failed: {exc}") from exc
        return row_to_document(row) if row else None

    async def query(
        self,
        kind: ContentKind,
        filters: Sequence[FieldFilter],
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        stmt = select(ContentModel).where(
            ContentModel.kind == kind.value, *(_condition(f) for f in filters),
        )
        if order_by is not None:
            column = getattr(ContentModel, order_by.field)
            stmt = stmt.order_by(
                column.desc() if order_by.descending else column.asc(),
                ContentModel.id.asc(),
            )
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"query {kind} failed: {exc}") from exc
        return [row_to_document(r) for r in rows]

    async def subscribe(
        self,
        kind: ContentKind,
        filters: Sequence[FieldFilter],
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> AsyncIterator[list[Document]]:
        changes = self._feed.listen(kind)
        try:
            # The feed ticks once as soon as it is listening, then once per write.
            async for _ in changes:
                yield await self.query(kind, filters, order_by, limit)
        finally:
            aclose = getattr(changes, "aclose", None)
            if aclose is not None:
                await aclose()

    async def update_field(
        self, kind: ContentKind, content_id: str, field: str, value: Any,
    ) -> None:
        try:
            async with self._session_factory() as session:
                if field in COLUMNS:
                    await session.execute(
                        update(ContentModel)
                        .where(ContentModel.kind == kind.value, ContentModel.id == content_id)
                        .values({field: value})
                    )
                else:
                    row = await session.get(ContentModel, content_id)
                    if row is not None and row.kind == kind.value:
                        row.body = {**row.body, field: value}
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"update {kind} {content_id} failed: {exc}") from exc
        await self._announce(kind, "updated", [content_id])

    async def batch_delete(self, kind: ContentKind, ids: Sequence[str]) -> None:
        if not ids:
            return
        if len(ids) > self.max_batch_size:
            raise ValueError(f"batch of {len(ids)} exceeds max {self.max_batch_size}")
        stmt = delete(ContentModel).where(
            ContentModel.kind == kind.value, ContentModel.id.in_(list(ids)),
        )
        try:
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"batch delete of {len(ids)} {kind} failed: {exc}") from exc
        await self._announce(kind, "deleted", list(ids))

    async def ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(select(1))

    async def _announce(self, kind: ContentKind, op: str, ids: list[str]) -> None:
        # The write is already committed; a lost announcement only delays live views.
        try:
            await self._feed.publish_change(kind, op, ids)
        except Exception:
            logger.exception("Failed to announce %s %s", op, kind)
