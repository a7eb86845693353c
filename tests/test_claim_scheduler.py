"""Tests for claiming due monitors."""
import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from uptime.access import Caller
from uptime.errors import AccessError, ClaimConflict, NotFound, StoreError
from uptime.services.claim_scheduler import MAX_CLAIM_BATCH, ClaimScheduler, clamp_count
from uptime.services.monitor_store import MonitorStore

from conftest import NOW, create_monitor, load_monitor


WORKER = Caller.worker()


@pytest.mark.asyncio
async def test_claims_in_due_order_across_batches(session_factory):
    ids = []
    for minutes in range(5, 0, -1):
        monitor = await create_monitor(session_factory, next_due_at=NOW - timedelta(minutes=minutes))
        ids.append(monitor.id)

    async with session_factory() as session:
        first = await ClaimScheduler(session).claim_next(WORKER, 2, now=NOW)
    async with session_factory() as session:
        second = await ClaimScheduler(session).claim_next(WORKER, 3, now=NOW)

    assert [t.id for t in first] == ids[:2]
    assert [t.id for t in second] == ids[2:]
    for monitor_id in ids:
        assert (await load_monitor(session_factory, monitor_id)).claimed is True


@pytest.mark.asyncio
async def test_ticket_carries_url_and_label(session_factory):
    monitor = await create_monitor(session_factory, url="https://status.example.org", label="Status")

    async with session_factory() as session:
        tickets = await ClaimScheduler(session).claim_next(WORKER, 1, now=NOW)

    assert len(tickets) == 1
    assert tickets[0].id == monitor.id
    assert tickets[0].url == "https://status.example.org"
    assert tickets[0].label == "Status"


@pytest.mark.asyncio
async def test_nothing_due_returns_empty_batch(session_factory):
    await create_monitor(session_factory, next_due_at=NOW + timedelta(minutes=1))
    await create_monitor(session_factory, next_due_at=None, claimed=True)

    async with session_factory() as session:
        assert await ClaimScheduler(session).claim_next(WORKER, 10, now=NOW) == []


@pytest.mark.asyncio
async def test_owner_may_not_claim_batches(session_factory):
    await create_monitor(session_factory)

    async with session_factory() as session:
        with pytest.raises(AccessError):
            await ClaimScheduler(session).claim_next(Caller.owner(1), 1, now=NOW)


@pytest.mark.asyncio
async def test_admin_may_not_claim_batches(session_factory):
    monitor = await create_monitor(session_factory)

    async with session_factory() as session:
        with pytest.raises(AccessError):
            await ClaimScheduler(session).claim_next(Caller.admin(99), 1, now=NOW)

    assert (await load_monitor(session_factory, monitor.id)).claimed is False


@pytest.mark.parametrize(
    "requested,expected",
    [(None, 1), (0, 1), (-4, 1), (1, 1), (7, 7), (MAX_CLAIM_BATCH, MAX_CLAIM_BATCH), (100, MAX_CLAIM_BATCH)],
)
def test_clamp_count(requested, expected):
    assert clamp_count(requested) == expected


@pytest.mark.asyncio
async def test_batch_size_is_clamped(session_factory):
    for _ in range(55):
        await create_monitor(session_factory)

    async with session_factory() as session:
        assert len(await ClaimScheduler(session).claim_next(WORKER, 0, now=NOW)) == 1
    async with session_factory() as session:
        assert len(await ClaimScheduler(session).claim_next(WORKER, 100, now=NOW)) == MAX_CLAIM_BATCH


@pytest.mark.asyncio
async def test_concurrent_claimers_never_share_a_monitor(session_factory):
    ids = {(await create_monitor(session_factory)).id for _ in range(10)}

    async def claim():
        async with session_factory() as session:
            return await ClaimScheduler(session).claim_next(WORKER, 3, now=NOW)

    batches = await asyncio.gather(*[claim() for _ in range(5)])
    claimed = [ticket.id for batch in batches for ticket in batch]

    assert len(claimed) == len(set(claimed))
    assert set(claimed) == ids


@pytest.mark.asyncio
async def test_store_failure_rolls_back_whole_batch(session_factory, monkeypatch):
    ids = [(await create_monitor(session_factory)).id for _ in range(3)]
    original = MonitorStore.try_claim
    calls = []

    async def flaky_try_claim(self, monitor_id, now):
        calls.append(monitor_id)
        if len(calls) == 2:
            raise OperationalError("UPDATE monitors", {}, Exception("disk I/O error"))
        return await original(self, monitor_id, now)

    monkeypatch.setattr(MonitorStore, "try_claim", flaky_try_claim)

    async with session_factory() as session:
        with pytest.raises(StoreError):
            await ClaimScheduler(session).claim_next(WORKER, 3, now=NOW)

    for monitor_id in ids:
        assert (await load_monitor(session_factory, monitor_id)).claimed is False


@pytest.mark.asyncio
async def test_claim_one_conflicts_when_already_claimed(session_factory):
    monitor = await create_monitor(session_factory, next_due_at=NOW + timedelta(hours=1))

    async with session_factory() as session:
        claimed = await ClaimScheduler(session).claim_one(Caller.owner(1), monitor.id, now=NOW)
    assert claimed.id == monitor.id

    async with session_factory() as session:
        with pytest.raises(ClaimConflict):
            await ClaimScheduler(session).claim_one(Caller.owner(1), monitor.id, now=NOW)


@pytest.mark.asyncio
async def test_claim_one_hides_foreign_monitor(session_factory):
    monitor = await create_monitor(session_factory, owner_id=1)

    async with session_factory() as session:
        with pytest.raises(NotFound):
            await ClaimScheduler(session).claim_one(Caller.owner(2), monitor.id, now=NOW)

    assert (await load_monitor(session_factory, monitor.id)).claimed is False


@pytest.mark.asyncio
async def test_pending_lists_oldest_claims_for_workers_only(session_factory):
    newer = await create_monitor(session_factory, claimed=True, updated_at=NOW)
    older = await create_monitor(session_factory, claimed=True, updated_at=NOW - timedelta(minutes=30))
    await create_monitor(session_factory)

    async with session_factory() as session:
        pending = await ClaimScheduler(session).pending(WORKER)
    assert [t.id for t in pending] == [older.id, newer.id]

    async with session_factory() as session:
        assert [t.id for t in await ClaimScheduler(session).pending(WORKER, 1)] == [older.id]

    async with session_factory() as session:
        with pytest.raises(AccessError):
            await ClaimScheduler(session).pending(Caller.admin(1))
