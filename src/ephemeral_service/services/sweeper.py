from __future__ import annotations

import logging
from typing import Sequence

from ephemeral_service.application.dto.sweep import SweepError, SweepReport
from ephemeral_service.application.exceptions import StoreError
from ephemeral_service.application.ports.clock import Clock
from ephemeral_service.application.ports.store import ContentStore, FieldFilter, FilterOp
from ephemeral_service.domain.value_objects.enums import ContentKind

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Physically deletes expired content in bounded, atomic batches.

    Expired means ``expires_at <= now`` with ``now`` taken once per run from
    the same clock every read path uses. Only one sweep runs at a time; a
    call made while one is in flight returns a skipped report.
    """

    def __init__(
        self,
        store: ContentStore,
        clock: Clock,
        *,
        batch_size: int | None = None,
        kinds: Sequence[ContentKind] = tuple(ContentKind),
    ) -> None:
        self._store = store
        self._clock = clock
        self._batch_size = min(batch_size or store.max_batch_size, store.max_batch_size)
        self._kinds = tuple(kinds)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def sweep(self) -> SweepReport:
        if self._running:
            logger.info("Expiry sweep already in progress, skipping")
            return SweepReport(skipped=True)

        self._running = True
        try:
            now = self._clock.now()
            report = SweepReport()
            for kind in self._kinds:
                await self._drain(
                    kind, [FieldFilter("expires_at", FilterOp.LTE, now)], report,
                )
            logger.info(
                "Expiry sweep done: %d removed, %d errors", report.total, len(report.errors),
            )
            return report
        finally:
            self._running = False

    async def purge_owner(self, user_id: str) -> SweepReport:
        """Delete all content owned by or addressed to ``user_id``, live or not."""
        report = SweepReport()
        for kind in self._kinds:
            await self._drain(kind, [FieldFilter("owner_id", FilterOp.EQ, user_id)], report)
            if kind == ContentKind.MESSAGE:
                await self._drain(
                    kind, [FieldFilter("participants", FilterOp.CONTAINS, user_id)], report,
                )
        logger.info(
            "Purged %d records for %s (%d errors)", report.total, user_id, len(report.errors),
        )
        return report

    async def _drain(
        self, kind: ContentKind, filters: list[FieldFilter], report: SweepReport,
    ) -> None:
        report.counts_by_kind.setdefault(kind, 0)
        while True:
            try:
                docs = await self._store.query(kind, filters, limit=self._batch_size)
                if not docs:
                    return
                ids = [doc["id"] for doc in docs]
                await self._store.batch_delete(kind, ids)
            except StoreError as exc:
                # The failed page would be returned again; move on to the next kind.
                logger.exception("Deleting %s page failed", kind)
                report.errors.append(SweepError(kind, exc.detail or str(exc)))
                return
            report.counts_by_kind[kind] += len(ids)
            logger.debug("Deleted %d %s records", len(ids), kind)


async def run_sweep(sweeper: ExpirySweeper) -> SweepReport:
    """Entry point for on-demand sweeps (admin endpoint, worker)."""
    report = await sweeper.sweep()
    if report.skipped:
        logger.info("Sweep request ignored, a sweep is already running")
    return report
