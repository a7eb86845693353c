"""Tests for the Monitor and Result stores."""
from datetime import timedelta

import pytest

from uptime.errors import NotFound, ValidationError
from uptime.models import CheckResult, Monitor
from uptime.services.monitor_store import MonitorStore, normalize_label
from uptime.services.result_store import ResultStore

from conftest import NOW, create_monitor, load_monitor


@pytest.mark.asyncio
async def test_create_assigns_id_and_audit_fields(db_session):
    store = MonitorStore(db_session)
    monitor = await store.create(
        Monitor(owner_id=7, url="https://example.com/health", label="  Health  ", frequency=5),
        now=NOW,
    )

    assert monitor.id is not None
    assert monitor.claimed is False
    assert monitor.created_at == NOW
    assert monitor.updated_at == NOW
    assert monitor.label == "Health"


@pytest.mark.parametrize(
    "url,label,frequency",
    [
        ("", None, 5),
        ("ftp://example.com", None, 5),
        ("example.com", None, 5),
        ("https://example.com/" + "a" * 300, None, 5),
        ("https://example.com", "x" * 191, 5),
        ("https://example.com", None, 0),
        ("https://example.com", None, 1441),
    ],
)
@pytest.mark.asyncio
async def test_create_rejects_out_of_bounds_fields(db_session, url, label, frequency):
    store = MonitorStore(db_session)
    with pytest.raises(ValidationError):
        await store.create(Monitor(owner_id=1, url=url, label=label, frequency=frequency), now=NOW)


def test_normalize_label_blank_becomes_none():
    assert normalize_label("   ") is None
    assert normalize_label(None) is None
    assert normalize_label(" api ") == "api"


@pytest.mark.asyncio
async def test_get_owned_hides_foreign_monitor(session_factory, db_session):
    monitor = await create_monitor(session_factory, owner_id=1)
    store = MonitorStore(db_session)

    assert (await store.get_owned(monitor.id, 1)).id == monitor.id
    with pytest.raises(NotFound):
        await store.get_owned(monitor.id, 2)
    with pytest.raises(NotFound):
        await store.get(monitor.id + 100)


@pytest.mark.asyncio
async def test_lists_are_ordered_by_id(session_factory, db_session):
    first = await create_monitor(session_factory, owner_id=1)
    await create_monitor(session_factory, owner_id=2)
    third = await create_monitor(session_factory, owner_id=1)
    store = MonitorStore(db_session)

    assert [m.id for m in await store.list_by_owner(1)] == [first.id, third.id]
    assert len(await store.list_all()) == 3


@pytest.mark.asyncio
async def test_find_due_orders_never_checked_first_and_excludes_future(session_factory, db_session):
    a = await create_monitor(session_factory, url="https://a.example", next_due_at=None)
    b = await create_monitor(session_factory, url="https://b.example", next_due_at=NOW - timedelta(seconds=10))
    await create_monitor(session_factory, url="https://c.example", next_due_at=NOW + timedelta(seconds=100))

    due = await MonitorStore(db_session).find_due(NOW, 10)

    assert [m.id for m in due] == [a.id, b.id]


@pytest.mark.asyncio
async def test_find_due_breaks_ties_by_id_and_honours_limit(session_factory, db_session):
    older = await create_monitor(session_factory, next_due_at=NOW - timedelta(minutes=5))
    tie_1 = await create_monitor(session_factory, next_due_at=NOW - timedelta(minutes=1))
    tie_2 = await create_monitor(session_factory, next_due_at=NOW - timedelta(minutes=1))
    store = MonitorStore(db_session)

    assert [m.id for m in await store.find_due(NOW, 10)] == [older.id, tie_1.id, tie_2.id]
    assert [m.id for m in await store.find_due(NOW, 2)] == [older.id, tie_1.id]
    assert [m.id for m in await store.find_due(NOW, 10, exclude_ids={older.id})] == [tie_1.id, tie_2.id]


@pytest.mark.asyncio
async def test_find_due_skips_claimed_monitors(session_factory, db_session):
    await create_monitor(session_factory, next_due_at=None, claimed=True)
    free = await create_monitor(session_factory, next_due_at=None)

    due = await MonitorStore(db_session).find_due(NOW, 10, lock=True)

    assert [m.id for m in due] == [free.id]


@pytest.mark.asyncio
async def test_find_claimed_returns_oldest_claim_first(session_factory, db_session):
    newer = await create_monitor(session_factory, claimed=True, updated_at=NOW)
    older = await create_monitor(session_factory, claimed=True, updated_at=NOW - timedelta(hours=1))
    await create_monitor(session_factory, claimed=False)
    store = MonitorStore(db_session)

    assert [m.id for m in await store.find_claimed()] == [older.id, newer.id]
    assert [m.id for m in await store.find_claimed(limit=1)] == [older.id]


@pytest.mark.asyncio
async def test_try_claim_succeeds_once(session_factory, db_session):
    monitor = await create_monitor(session_factory)
    store = MonitorStore(db_session)

    assert await store.try_claim(monitor.id, NOW) is True
    assert await store.try_claim(monitor.id, NOW) is False
    await db_session.commit()

    stored = await load_monitor(session_factory, monitor.id)
    assert stored.claimed is True
    assert stored.claimed_at == NOW
    assert stored.updated_at == NOW


@pytest.mark.asyncio
async def test_try_release_requires_open_claim(session_factory, db_session):
    monitor = await create_monitor(session_factory)
    store = MonitorStore(db_session)
    due = NOW + timedelta(minutes=5)

    assert await store.try_release(monitor.id, due, NOW) is False
    assert await store.try_claim(monitor.id, NOW) is True
    assert await store.try_release(monitor.id, due, NOW) is True
    await db_session.commit()

    stored = await load_monitor(session_factory, monitor.id)
    assert stored.claimed is False
    assert stored.claimed_at is None
    assert stored.next_due_at == due


@pytest.mark.asyncio
async def test_seed_next_due_only_fills_null(session_factory, db_session):
    unset = await create_monitor(session_factory, next_due_at=None, frequency=10)
    scheduled_at = NOW + timedelta(minutes=3)
    scheduled = await create_monitor(session_factory, next_due_at=scheduled_at)
    store = MonitorStore(db_session)

    assert await store.seed_next_due(await store.get(unset.id), now=NOW) is True
    assert await store.seed_next_due(await store.get(scheduled.id), now=NOW) is False
    await db_session.commit()

    assert (await load_monitor(session_factory, unset.id)).next_due_at == NOW + timedelta(minutes=10)
    assert (await load_monitor(session_factory, scheduled.id)).next_due_at == scheduled_at


@pytest.mark.asyncio
async def test_delete_cascades_results(session_factory, db_session):
    monitor = await create_monitor(session_factory)
    results = ResultStore(db_session)
    first = await results.add(CheckResult(monitor_id=monitor.id, status_code=200, checked_at=NOW))
    second = await results.add(CheckResult(monitor_id=monitor.id, error_text="timeout", checked_at=NOW))
    await db_session.commit()

    await MonitorStore(db_session).delete(monitor.id)
    await db_session.commit()

    assert await load_monitor(session_factory, monitor.id) is None
    for result_id in (first.id, second.id):
        with pytest.raises(NotFound):
            await results.get(result_id)


@pytest.mark.asyncio
async def test_delete_missing_monitor_raises_not_found(db_session):
    with pytest.raises(NotFound):
        await MonitorStore(db_session).delete(999)


@pytest.mark.asyncio
async def test_result_listing_newest_first_with_paging(session_factory, db_session):
    monitor = await create_monitor(session_factory)
    results = ResultStore(db_session)
    for minutes in (30, 10, 20):
        await results.add(
            CheckResult(monitor_id=monitor.id, status_code=200, checked_at=NOW - timedelta(minutes=minutes))
        )
    await db_session.commit()

    listed = await results.list_for_monitor(monitor.id)
    assert [r.checked_at for r in listed] == [
        NOW - timedelta(minutes=10),
        NOW - timedelta(minutes=20),
        NOW - timedelta(minutes=30),
    ]

    since = NOW - timedelta(minutes=25)
    assert await results.count_for_monitor(monitor.id, since=since) == 2
    page_two = await results.list_for_monitor(monitor.id, limit=1, since=since, offset=1)
    assert [r.checked_at for r in page_two] == [NOW - timedelta(minutes=20)]
