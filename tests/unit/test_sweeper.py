from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from ephemeral_service.application.exceptions import InvalidArgumentError, StoreError
from ephemeral_service.domain.entities.follower import Follower
from ephemeral_service.domain.value_objects.enums import ContentKind
from ephemeral_service.services import account_service
from ephemeral_service.services.sweeper import ExpirySweeper, run_sweep
from ephemeral_service.workers.sweeper_worker import SweepScheduler
from tests.conftest import T0, InMemoryContentStore, make_broadcast, make_message, make_snap

EXPIRED = T0 - timedelta(hours=25)
LIVE = T0 - timedelta(hours=1)


def _seed_mixed(store) -> None:
    store.insert(ContentKind.MESSAGE, make_message(created_at=LIVE))
    store.insert(ContentKind.MESSAGE, make_message(created_at=EXPIRED))
    store.insert(ContentKind.SNAP, make_snap(created_at=EXPIRED))
    store.insert(ContentKind.SNAP, make_snap(created_at=LIVE))
    store.insert(ContentKind.BROADCAST, make_broadcast(created_at=EXPIRED))


@pytest.mark.asyncio
async def test_sweep_removes_only_expired(store, clock):
    _seed_mixed(store)

    report = await ExpirySweeper(store, clock).sweep()

    assert report.counts_by_kind == {
        ContentKind.MESSAGE: 1,
        ContentKind.SNAP: 1,
        ContentKind.BROADCAST: 1,
    }
    assert report.total == 3
    assert report.errors == []
    assert len(store.docs[ContentKind.MESSAGE]) == 1
    assert len(store.docs[ContentKind.SNAP]) == 1
    assert len(store.docs[ContentKind.BROADCAST]) == 0


@pytest.mark.asyncio
async def test_sweep_is_idempotent(store, clock):
    _seed_mixed(store)
    sweeper = ExpirySweeper(store, clock)

    await sweeper.sweep()
    second = await sweeper.sweep()

    assert second.total == 0
    assert len(store.docs[ContentKind.MESSAGE]) == 1


@pytest.mark.asyncio
async def test_sweep_deletes_in_bounded_pages(store, clock):
    for _ in range(5):
        store.insert(ContentKind.BROADCAST, make_broadcast(created_at=EXPIRED))

    report = await ExpirySweeper(store, clock, batch_size=2, kinds=[ContentKind.BROADCAST]).sweep()

    assert report.counts_by_kind[ContentKind.BROADCAST] == 5
    assert store.calls.count(("batch_delete", ContentKind.BROADCAST)) == 3


@pytest.mark.asyncio
async def test_batch_size_is_capped_by_store(store, clock):
    for _ in range(3):
        store.insert(ContentKind.SNAP, make_snap(created_at=EXPIRED))
    store.max_batch_size = 2

    report = await ExpirySweeper(store, clock, batch_size=1000, kinds=[ContentKind.SNAP]).sweep()

    assert report.counts_by_kind[ContentKind.SNAP] == 3


@pytest.mark.asyncio
async def test_failed_page_is_reported_and_other_kinds_still_swept(store, clock):
    _seed_mixed(store)
    store.fail("batch_delete", StoreError("write quota exhausted"), ContentKind.MESSAGE)

    report = await ExpirySweeper(store, clock).sweep()

    assert [e.kind for e in report.errors] == [ContentKind.MESSAGE]
    assert "write quota" in report.errors[0].detail
    assert report.counts_by_kind[ContentKind.MESSAGE] == 0
    assert report.counts_by_kind[ContentKind.SNAP] == 1
    assert report.counts_by_kind[ContentKind.BROADCAST] == 1

    store.heal()
    retry = await ExpirySweeper(store, clock).sweep()
    assert retry.counts_by_kind[ContentKind.MESSAGE] == 1


class _BlockingStore(InMemoryContentStore):
    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def query(self, kind, filters, order_by=None, limit=None):
        self.entered.set()
        await self.release.wait()
        return await super().query(kind, filters, order_by, limit)


@pytest.mark.asyncio
async def test_overlapping_sweep_is_skipped(clock):
    store = _BlockingStore()
    sweeper = ExpirySweeper(store, clock)

    first = asyncio.create_task(sweeper.sweep())
    await store.entered.wait()
    assert sweeper.running

    second = await run_sweep(sweeper)
    assert second.skipped is True

    store.release.set()
    report = await first
    assert report.skipped is False
    assert not sweeper.running


@pytest.mark.asyncio
async def test_purge_owner_removes_live_and_expired_content(store, clock):
    store.insert(ContentKind.MESSAGE, make_message(from_id="alice", to_id="bob"))
    store.insert(ContentKind.MESSAGE, make_message(from_id="bob", to_id="alice", created_at=EXPIRED))
    store.insert(ContentKind.MESSAGE, make_message(from_id="bob", to_id="carol"))
    store.insert(ContentKind.SNAP, make_snap(owner_id="alice"))
    store.insert(ContentKind.BROADCAST, make_broadcast(owner_id="alice"))
    store.insert(ContentKind.BROADCAST, make_broadcast(owner_id="vendor2"))

    report = await account_service.purge_all_content_for("alice", ExpirySweeper(store, clock))

    assert report.counts_by_kind == {
        ContentKind.MESSAGE: 2,
        ContentKind.SNAP: 1,
        ContentKind.BROADCAST: 1,
    }
    assert [d["to_id"] for d in store.docs[ContentKind.MESSAGE].values()] == ["carol"]
    assert [d["owner_id"] for d in store.docs[ContentKind.BROADCAST].values()] == ["vendor2"]


@pytest.mark.asyncio
async def test_purge_clears_follow_edges_and_push_token(store, clock, directory):
    directory.tokens = {"alice": "tok-alice", "bob": "tok-bob"}
    directory.followers = {
        "vendor1": [Follower(id="alice", token="tok-alice"), Follower(id="bob", token="tok-bob")],
        "alice": [Follower(id="bob", token="tok-bob")],
    }
    store.insert(ContentKind.SNAP, make_snap(owner_id="alice"))

    await account_service.purge_all_content_for("alice", ExpirySweeper(store, clock), directory)

    assert directory.forgotten == ["alice"]
    assert await directory.get_token("alice") is None
    assert await directory.get_token("bob") == "tok-bob"
    assert [f.id for f in await directory.get_followers("vendor1")] == ["bob"]
    assert await directory.get_followers("alice") == []


@pytest.mark.asyncio
async def test_purge_requires_user_id(store, clock):
    with pytest.raises(InvalidArgumentError):
        await account_service.purge_all_content_for("", ExpirySweeper(store, clock))


@pytest.mark.asyncio
async def test_scheduler_runs_sweeps_until_stopped(store, clock):
    store.insert(ContentKind.SNAP, make_snap(created_at=EXPIRED))
    scheduler = SweepScheduler(ExpirySweeper(store, clock), interval=0.01)

    await scheduler.start()
    assert scheduler.started
    for _ in range(100):
        if not store.docs[ContentKind.SNAP]:
            break
        await asyncio.sleep(0.01)
    await scheduler.stop()

    assert not scheduler.started
    assert store.docs[ContentKind.SNAP] == {}
