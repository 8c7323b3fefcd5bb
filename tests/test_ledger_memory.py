"""In-memory ledger store: atomic commit, conflict retry, sentinels and queries."""

import asyncio
from datetime import datetime

import pytest

from wildwatch.core.config import get_settings
from wildwatch.ledger.base import (
    DocRef,
    LedgerError,
    Query,
    TransactionAbortedError,
    increment,
    server_timestamp,
)
from wildwatch.ledger.memory import InMemoryLedgerStore

pytestmark = pytest.mark.asyncio


async def _set(store, ref, data):
    async def _work(tx):
        await tx.set(ref, data)

    await store.run_transaction(_work)


async def test_reads_must_precede_writes(store):
    ref = DocRef("counters", "c1")

    async def _work(tx):
        await tx.set(ref, {"value": 1})
        await tx.get(ref)

    with pytest.raises(LedgerError):
        await store.run_transaction(_work)
    assert not (await store.get(ref)).exists


async def test_failed_commit_writes_nothing(store):
    written = DocRef("counters", "c1")
    missing = DocRef("counters", "nope")

    async def _work(tx):
        await tx.set(written, {"value": 1})
        await tx.update(missing, {"value": 2})

    with pytest.raises(LedgerError):
        await store.run_transaction(_work)
    assert not (await store.get(written)).exists
    assert not (await store.get(missing)).exists


async def test_exception_in_work_aborts(store):
    ref = DocRef("counters", "c1")

    async def _work(tx):
        await tx.get(ref)
        await tx.set(ref, {"value": 1})
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await store.run_transaction(_work)
    assert not (await store.get(ref)).exists


async def test_increment_and_server_timestamp(store):
    ref = DocRef("counters", "c1")
    await _set(store, ref, {"value": 5})

    async def _work(tx):
        await tx.update(ref, {"value": increment(-2), "fresh": increment(3), "at": server_timestamp()})

    await store.run_transaction(_work)
    snap = await store.get(ref)
    assert snap.get("value") == 3
    assert snap.get("fresh") == 3
    assert isinstance(snap.get("at"), datetime)


async def test_merge_keeps_other_fields(store):
    ref = DocRef("users", "u1")
    await _set(store, ref, {"name": "Asha", "points": 4})

    async def _work(tx):
        await tx.set(ref, {"points": 9}, merge=True)

    await store.run_transaction(_work)
    assert (await store.get(ref)).data == {"name": "Asha", "points": 9}


async def test_concurrent_read_modify_write_retries(store):
    ref = DocRef("counters", "c1")
    await _set(store, ref, {"value": 0})

    async def _bump(tx):
        snap = await tx.get(ref)
        await tx.update(ref, {"value": snap.get("value") + 1})

    await asyncio.gather(*(store.run_transaction(_bump) for _ in range(8)))
    assert (await store.get(ref)).get("value") == 8


async def test_contention_beyond_max_attempts_aborts():
    store = InMemoryLedgerStore(max_attempts=3)
    ref = DocRef("counters", "c1")
    await _set(store, ref, {"value": 0})
    calls = 0

    async def _interfere(tx):
        await tx.set(ref, {"value": -1})

    async def _work(tx):
        nonlocal calls
        calls += 1
        snap = await tx.get(ref)
        # another writer commits between this read and our commit
        await store.run_transaction(_interfere)
        await tx.update(ref, {"value": snap.get("value") + 1})

    with pytest.raises(TransactionAbortedError):
        await store.run_transaction(_work)
    assert calls == 3
    assert (await store.get(ref)).get("value") == -1


def _always_conflicting(store, ref):
    async def _interfere(tx):
        await tx.set(ref, {"value": -1})

    async def _work(tx):
        await tx.get(ref)
        await store.run_transaction(_interfere)
        await tx.update(ref, {"value": 1})

    return _work


async def test_retries_back_off_between_attempts():
    store = InMemoryLedgerStore(max_attempts=4, backoff_base=0.0001)
    ref = DocRef("counters", "c1")
    await _set(store, ref, {"value": 0})
    delays = []
    real_backoff = store._backoff

    def _recording(attempt):
        delay = real_backoff(attempt)
        delays.append((attempt, delay))
        return delay

    store._backoff = _recording
    with pytest.raises(TransactionAbortedError):
        await store.run_transaction(_always_conflicting(store, ref))

    assert [a for a, _ in delays] == [1, 2, 3]
    assert all(0 <= d <= store.backoff_cap for _, d in delays)


async def test_time_budget_bounds_retries():
    store = InMemoryLedgerStore(max_attempts=1000, timeout_seconds=0)
    ref = DocRef("counters", "c1")
    await _set(store, ref, {"value": 0})

    with pytest.raises(TransactionAbortedError) as exc:
        await store.run_transaction(_always_conflicting(store, ref))
    assert exc.value.details == {"attempts": 1}


async def test_default_limits_come_from_settings(store):
    settings = get_settings()
    assert store.max_attempts == settings.transaction_max_attempts >= 100
    assert store.timeout_seconds == settings.transaction_timeout_seconds


async def test_create_allocates_ordered_ids(store):
    async def _work(tx):
        first = await tx.create("history", {"n": 1})
        second = await tx.create("history", {"n": 2})
        return first, second

    first, second = await store.run_transaction(_work)
    assert first.id != second.id
    assert first.id < second.id


async def test_query_filters_sorts_and_pages(store):
    for i, (owner, score) in enumerate([("a", 5), ("b", 9), ("a", 7), ("a", 1)]):
        await _set(store, DocRef("scores", f"s{i}"), {"owner": owner, "score": score})

    rows = await store.query(Query("scores", where={"owner": "a"}, order_by="score", descending=True))
    assert [r.get("score") for r in rows] == [7, 5, 1]

    rows = await store.query(Query("scores", order_by="score", limit=2, offset=1))
    assert [r.get("score") for r in rows] == [5, 7]

    assert await store.count("scores", {"owner": "a"}) == 3
    assert await store.count("scores") == 4


async def test_deleted_documents_leave_queries(store):
    ref = DocRef("scores", "s1")
    await _set(store, ref, {"score": 1})

    async def _work(tx):
        await tx.delete(ref)

    await store.run_transaction(_work)
    assert not (await store.get(ref)).exists
    assert await store.count("scores") == 0
