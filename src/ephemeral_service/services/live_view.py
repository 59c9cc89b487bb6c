"""Live-view filter: only unexpired content ever reaches a reader.

A subscription re-evaluates liveness whenever the store emits a new snapshot
and, independently, on a timer. The timer wakes at the earliest upcoming
expiry among the held records, or after ``tick_seconds``, whichever is
sooner, so content disappears on time even when nothing is written.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Generic, Iterable, Sequence, TypeVar

from ephemeral_service.application.mappers import document_to_content
from ephemeral_service.application.policies.ttl import is_live
from ephemeral_service.application.ports.clock import Clock
from ephemeral_service.application.ports.store import (
    ContentStore,
    Document,
    FieldFilter,
    FilterOp,
    OrderBy,
)
from ephemeral_service.domain.entities.content import EphemeralContent
from ephemeral_service.domain.value_objects.enums import ContentKind

logger = logging.getLogger(__name__)

T = TypeVar("T")
C = TypeVar("C", bound=EphemeralContent)

NEWEST_FIRST = OrderBy("created_at", descending=True)

_END = object()
_TICK = object()
_UNSET: Any = object()


def order_newest_first(items: Iterable[C]) -> list[C]:
    """Descending ``created_at``; ties broken by ascending id."""
    ordered = sorted(items, key=lambda c: c.id)
    ordered.sort(key=lambda c: c.created_at, reverse=True)
    return ordered


def filter_live(items: Iterable[C], now: datetime) -> list[C]:
    return order_newest_first(c for c in items if is_live(now, c.expires_at))


def live_filters(filters: Sequence[FieldFilter], now: datetime) -> list[FieldFilter]:
    """Push the expiry gate down to the store so expired rows don't eat the page."""
    return [*filters, FieldFilter("expires_at", FilterOp.GT, now)]


class LiveView(Generic[T]):
    """Continuously-updated, expiry-filtered view over one store query."""

    def __init__(
        self,
        store: ContentStore,
        clock: Clock,
        kind: ContentKind,
        filters: Sequence[FieldFilter],
        project: Callable[[list[Any]], T],
        *,
        order_by: OrderBy | None = NEWEST_FIRST,
        limit: int | None = None,
        tick_seconds: float = 30.0,
    ) -> None:
        if tick_seconds <= 0:
            raise ValueError("tick_seconds must be positive")
        self._store = store
        self._clock = clock
        self._kind = kind
        self._filters = list(filters)
        self._project = project
        self._order_by = order_by
        self._limit = limit
        self._tick_seconds = tick_seconds

    async def stream(self) -> AsyncIterator[T]:
        """Yield the projected live set, then again every time it changes.

        Closing the generator (or cancelling the task iterating it) stops both
        the store subscription and the timer.
        """
        source = self._store.subscribe(
            self._kind,
            live_filters(self._filters, self._clock.now()),
            self._order_by,
            self._limit,
        )
        queue: asyncio.Queue[Any] = asyncio.Queue()
        pump = asyncio.create_task(
            self._pump(source, queue), name=f"live-view-{self._kind}",
        )
        held: list[EphemeralContent] | None = None
        last: Any = _UNSET
        try:
            while True:
                timeout = None if held is None else self._wake_after(held)
                try:
                    item = await asyncio.wait_for(queue.get(), timeout)
                except asyncio.TimeoutError:
                    item = _TICK

                if item is _END:
                    return
                if isinstance(item, BaseException):
                    raise item
                if item is not _TICK:
                    held = [document_to_content(self._kind, doc) for doc in item]

                value = self._project(filter_live(held or [], self._clock.now()))
                if last is _UNSET or value != last:
                    last = value
                    yield value
        finally:
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
            logger.debug("Live view on %s closed", self._kind)

    @staticmethod
    async def _pump(source: AsyncIterator[list[Document]], queue: asyncio.Queue[Any]) -> None:
        try:
            async for docs in source:
                await queue.put(docs)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await queue.put(exc)
            return
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()
        await queue.put(_END)

    def _wake_after(self, held: list[EphemeralContent]) -> float:
        now = self._clock.now()
        upcoming = [c.expires_at for c in held if is_live(now, c.expires_at)]
        if not upcoming:
            return self._tick_seconds
        until_next = (min(upcoming) - now).total_seconds()
        return max(0.0, min(self._tick_seconds, until_next))
