from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, AsyncIterator, Protocol, Sequence

from ephemeral_service.domain.value_objects.enums import ContentKind

Document = dict[str, Any]

MAX_BATCH_SIZE = 500


class FilterOp(StrEnum):
    EQ = "=="
    LT = "<"
    LTE = "<="
    GT = ">"
    CONTAINS = "array-contains"


@dataclass(frozen=True, slots=True)
class FieldFilter:
    field: str
    op: FilterOp
    value: Any

    def matches(self, doc: Document) -> bool:
        """Evaluate the filter against a plain document (in-process stores)."""
        if self.field not in doc:
            return False
        actual = doc[self.field]
        if self.op == FilterOp.EQ:
            return actual == self.value
        if self.op == FilterOp.CONTAINS:
            return self.value in (actual or ())
        if actual is None:
            return False
        if self.op == FilterOp.LT:
            return actual < self.value
        if self.op == FilterOp.LTE:
            return actual <= self.value
        return actual > self.value


@dataclass(frozen=True, slots=True)
class OrderBy:
    field: str
    descending: bool = True


class ContentStore(Protocol):
    """Document store holding every ephemeral content kind.

    Documents are flat mappings; ``id`` is assigned by the store on create and
    present on every document it returns. Single-record operations raise
    ``StoreError`` on transport failures.
    """

    max_batch_size: int

    async def create(self, kind: ContentKind, record: Document) -> str: ...

    async def get_by_id(self, kind: ContentKind, content_id: str) -> Document | None: ...

    async def query(
        self,
        kind: ContentKind,
        filters: Sequence[FieldFilter],
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Document]: ...

    def subscribe(
        self,
        kind: ContentKind,
        filters: Sequence[FieldFilter],
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> AsyncIterator[list[Document]]:
        """Emit the current result set, then a fresh one after every write to ``kind``."""
        ...

    async def update_field(
        self, kind: ContentKind, content_id: str, field: str, value: Any,
    ) -> None: ...

    async def batch_delete(self, kind: ContentKind, ids: Sequence[str]) -> None:
        """Delete ``ids`` atomically. Unknown ids are ignored; at most ``max_batch_size``."""
        ...
