"""MongoDB ledger store (motor).

Transactions run through ``ClientSession.with_transaction``, which retries
the callback on ``TransientTransactionError`` and retries the commit on
``UnknownTransactionCommitResult``. Multi-document transactions need a
replica set or a sharded cluster.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession
from pymongo import ASCENDING, DESCENDING

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
)

log = get_logger(__name__)

T = TypeVar("T")

INDEXES: dict[str, list[list[tuple[str, int]]]] = {
    "users": [[("points", DESCENDING)]],
    "points_history": [[("user_id", ASCENDING), ("created_at", DESCENDING)]],
    "posts": [[("creator_id", ASCENDING), ("created_at", DESCENDING)], [("created_at", DESCENDING)]],
    "likes": [[("user_id", ASCENDING)], [("post_id", ASCENDING)]],
    "comments": [[("post_id", ASCENDING), ("created_at", ASCENDING)]],
    "sightings": [[("status", ASCENDING), ("created_at", DESCENDING)], [("author_id", ASCENDING), ("created_at", DESCENDING)]],
    "audit_logs": [[("user_id", ASCENDING), ("created_at", DESCENDING)]],
}


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


def resolve_document(data: dict[str, Any], now: datetime) -> dict[str, Any]:
    """Full document for a replace: sentinels become concrete values."""
    out = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            out[key] = now
        elif isinstance(value, Increment):
            out[key] = value.amount
        else:
            out[key] = value
    return out


def build_update(data: dict[str, Any], now: datetime) -> dict[str, Any]:
    """Partial-update document: ``increment`` fields go to ``$inc``, the rest to ``$set``."""
    set_fields: dict[str, Any] = {}
    inc_fields: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Increment):
            inc_fields[key] = value.amount
        elif value is SERVER_TIMESTAMP:
            set_fields[key] = now
        else:
            set_fields[key] = value
    update: dict[str, Any] = {}
    if set_fields:
        update["$set"] = set_fields
    if inc_fields:
        update["$inc"] = inc_fields
    return update


def _snapshot(ref: DocRef, doc: dict[str, Any] | None) -> Snapshot:
    if doc is None:
        return Snapshot(ref, None)
    doc = dict(doc)
    doc.pop("_id", None)
    return Snapshot(ref, doc)


class _MongoTransaction(Transaction):
    def __init__(self, db, session: AsyncIOMotorClientSession) -> None:
        self._db = db
        self._session = session

    async def get(self, ref: DocRef) -> Snapshot:
        doc = await self._db[ref.collection].find_one({"_id": ref.id}, session=self._session)
        return _snapshot(ref, doc)

    async def set(self, ref: DocRef, data: dict[str, Any], merge: bool = False) -> None:
        now = datetime.utcnow()
        coll = self._db[ref.collection]
        if merge:
            update = build_update(data, now)
            if update:
                await coll.update_one({"_id": ref.id}, update, upsert=True, session=self._session)
            return
        await coll.replace_one({"_id": ref.id}, resolve_document(data, now), upsert=True, session=self._session)

    async def update(self, ref: DocRef, data: dict[str, Any]) -> None:
        update = build_update(data, datetime.utcnow())
        if not update:
            return
        result = await self._db[ref.collection].update_one({"_id": ref.id}, update, session=self._session)
        if result.matched_count == 0:
            raise LedgerError(f"No document to update: {ref.path}")

    async def delete(self, ref: DocRef) -> None:
        await self._db[ref.collection].delete_one({"_id": ref.id}, session=self._session)


class MongoLedgerStore(LedgerStore):
    def __init__(self, uri: str, db_name: str) -> None:
        # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
        kwargs = {}
        if _use_tls(uri):
            kwargs["tlsCAFile"] = certifi.where()
            kwargs["tlsDisableOCSPEndpointCheck"] = True
        self._client = AsyncIOMotorClient(uri, **kwargs)
        self._db = self._client[db_name]

    async def connect(self) -> None:
        for collection, indexes in INDEXES.items():
            for keys in indexes:
                await self._db[collection].create_index(keys)
        log.info("ledger_connected", backend="mongo", db=self._db.name)

    async def close(self) -> None:
        self._client.close()

    async def run_transaction(self, work: Callable[[Transaction], Awaitable[T]]) -> T:
        async with await self._client.start_session() as session:

            async def _callback(s: AsyncIOMotorClientSession) -> T:
                return await work(_MongoTransaction(self._db, s))

            return await session.with_transaction(_callback)

    async def get(self, ref: DocRef) -> Snapshot:
        doc = await self._db[ref.collection].find_one({"_id": ref.id})
        return _snapshot(ref, doc)

    async def query(self, query: Query) -> list[Snapshot]:
        cursor = self._db[query.collection].find(query.where or {})
        if query.order_by:
            direction = DESCENDING if query.descending else ASCENDING
            cursor = cursor.sort([(query.order_by, direction), ("_id", direction)])
        if query.offset:
            cursor = cursor.skip(query.offset)
        if query.limit is not None:
            cursor = cursor.limit(query.limit)
        docs = await cursor.to_list(length=None)
        return [_snapshot(DocRef(query.collection, str(d["_id"])), d) for d in docs]

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        return await self._db[collection].count_documents(where or {})
