"""In-process ledger store with optimistic concurrency.

Every stored document carries the commit sequence number that last wrote it.
A transaction records the version of each document it reads and buffers its
writes; at commit the read versions are checked against the current ones and,
if any changed, ``work`` is run again after a jittered backoff, until it
commits, ``max_attempts`` is reached or ``timeout_seconds`` elapse (the same
time budget ``ClientSession.with_transaction`` uses). Used by tests and local
development.
"""

import asyncio
import copy
import random
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

from wildwatch.core.logging import get_logger
from wildwatch.ledger.base import (
    SERVER_TIMESTAMP,
    DocRef,
    Increment,
    LedgerError,
    LedgerStore,
    Query,
    Snapshot,
    Transaction,
    TransactionAbortedError,
)

log = get_logger(__name__)

T = TypeVar("T")

_Key = tuple[str, str]


@dataclass
class _Stored:
    version: int
    data: dict[str, Any] | None  # None = deleted


@dataclass
class _Write:
    op: str  # set | merge | update | delete
    ref: DocRef
    data: dict[str, Any] | None = None


def _resolve(value: Any, current: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, Increment):
        base = current if isinstance(current, (int, float)) and not isinstance(current, bool) else 0
        return base + value.amount
    return copy.deepcopy(value)


class _MemoryTransaction(Transaction):
    def __init__(self, store: "InMemoryLedgerStore") -> None:
        self._store = store
        self.reads: dict[_Key, int] = {}
        self.writes: list[_Write] = []

    async def get(self, ref: DocRef) -> Snapshot:
        if self.writes:
            raise LedgerError("Transaction reads must happen before writes")
        await asyncio.sleep(0)
        stored = self._store._docs.get((ref.collection, ref.id))
        self.reads[(ref.collection, ref.id)] = stored.version if stored else 0
        data = copy.deepcopy(stored.data) if stored else None
        return Snapshot(ref, data)

    async def set(self, ref: DocRef, data: dict[str, Any], merge: bool = False) -> None:
        self.writes.append(_Write("merge" if merge else "set", ref, dict(data)))

    async def update(self, ref: DocRef, data: dict[str, Any]) -> None:
        self.writes.append(_Write("update", ref, dict(data)))

    async def delete(self, ref: DocRef) -> None:
        self.writes.append(_Write("delete", ref))


class InMemoryLedgerStore(LedgerStore):
    def __init__(
        self,
        max_attempts: int = 100,
        timeout_seconds: float = 120.0,
        backoff_base: float = 0.002,
        backoff_cap: float = 0.1,
    ) -> None:
        self.max_attempts = max_attempts
        self.timeout_seconds = timeout_seconds
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._docs: dict[_Key, _Stored] = {}
        self._seq = 0
        self._lock = asyncio.Lock()

    def _backoff(self, attempt: int) -> float:
        """Full jitter: uniform in [0, min(cap, base * 2**attempt)]."""
        return random.uniform(0, min(self.backoff_cap, self.backoff_base * 2 ** min(attempt, 16)))

    async def run_transaction(self, work: Callable[[Transaction], Awaitable[T]]) -> T:
        deadline = time.monotonic() + self.timeout_seconds
        attempt = 0
        while True:
            attempt += 1
            tx = _MemoryTransaction(self)
            result = await work(tx)
            if await self._commit(tx):
                return result
            if attempt >= self.max_attempts or time.monotonic() >= deadline:
                break
            delay = self._backoff(attempt)
            log.debug("transaction_conflict", attempt=attempt, retry_in=round(delay, 4))
            await asyncio.sleep(delay)
        log.warning("transaction_aborted", attempts=attempt)
        raise TransactionAbortedError(attempts=attempt)

    async def _commit(self, tx: _MemoryTransaction) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            for key, version in tx.reads.items():
                stored = self._docs.get(key)
                if (stored.version if stored else 0) != version:
                    return False
            staged = self._stage(tx.writes)
            if staged:
                self._seq += 1
                for key, data in staged.items():
                    self._docs[key] = _Stored(self._seq, data)
            return True

    def _stage(self, writes: list[_Write]) -> dict[_Key, dict[str, Any] | None]:
        """Compute resulting documents without touching stored state."""
        now = datetime.utcnow()
        staged: dict[_Key, dict[str, Any] | None] = {}
        for w in writes:
            key = (w.ref.collection, w.ref.id)
            if key in staged:
                current = staged[key]
            else:
                stored = self._docs.get(key)
                current = stored.data if stored else None
            if w.op == "delete":
                staged[key] = None
                continue
            if w.op == "update" and current is None:
                raise LedgerError(f"No document to update: {w.ref.path}")
            if w.op == "set":
                base: dict[str, Any] = {}
            else:
                base = copy.deepcopy(current) if current else {}
            for field_name, value in (w.data or {}).items():
                base[field_name] = _resolve(value, base.get(field_name), now)
            staged[key] = base
        return staged

    async def get(self, ref: DocRef) -> Snapshot:
        await asyncio.sleep(0)
        stored = self._docs.get((ref.collection, ref.id))
        return Snapshot(ref, copy.deepcopy(stored.data) if stored else None)

    def _live(self, collection: str, where: dict[str, Any] | None) -> list[Snapshot]:
        out = []
        for (coll, doc_id), stored in sorted(self._docs.items()):
            if coll != collection or stored.data is None:
                continue
            if where and any(stored.data.get(k) != v for k, v in where.items()):
                continue
            out.append(Snapshot(DocRef(coll, doc_id), copy.deepcopy(stored.data)))
        return out

    async def query(self, query: Query) -> list[Snapshot]:
        await asyncio.sleep(0)
        rows = self._live(query.collection, query.where)
        if query.order_by:
            order_by = query.order_by
            if query.descending:
                rows.reverse()
            present = [r for r in rows if r.get(order_by) is not None]
            missing = [r for r in rows if r.get(order_by) is None]
            present.sort(key=lambda r: r.get(order_by), reverse=query.descending)
            rows = present + missing
        rows = rows[query.offset:]
        if query.limit is not None:
            rows = rows[: query.limit]
        return rows

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        await asyncio.sleep(0)
        return len(self._live(collection, where))
