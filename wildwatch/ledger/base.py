"""Ledger store contract: transactional document storage for points and content.

A store holds named collections of documents addressed by ``DocRef``. All
point-affecting writes go through ``LedgerStore.run_transaction(work)``:
``work`` receives a ``Transaction``, performs its reads first and then its
writes, and the store commits everything or nothing. On a write conflict the
store runs ``work`` again from the start, so ``work`` must not have side
effects outside the transaction.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from bson import ObjectId

from wildwatch.core.config import get_settings
from wildwatch.core.exceptions import AppError, ConflictError

T = TypeVar("T")


class LedgerError(AppError):
    """Misuse of the store API (e.g. read after write, update of a missing document)."""

    def __init__(self, message: str):
        super().__init__(message, code="LEDGER_ERROR")


class TransactionAbortedError(ConflictError):
    def __init__(self, message: str = "Transaction could not be committed", attempts: int = 0):
        super().__init__(message, details={"attempts": attempts})


@dataclass(frozen=True)
class DocRef:
    collection: str
    id: str

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"


@dataclass
class Snapshot:
    """Point-in-time view of a document; ``data`` is None when it does not exist."""

    ref: DocRef
    data: dict[str, Any] | None = None

    @property
    def id(self) -> str:
        return self.ref.id

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, key: str, default: Any = None) -> Any:
        if self.data is None:
            return default
        return self.data.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Document fields plus ``id``."""
        return {"id": self.ref.id, **(self.data or {})}


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Increment:
    amount: int | float


def server_timestamp() -> _ServerTimestamp:
    """Field value resolved to the store's write time."""
    return SERVER_TIMESTAMP


def increment(amount: int | float) -> Increment:
    """Field update directive: add ``amount`` to the stored numeric value."""
    return Increment(amount)


def new_id() -> str:
    """Unique, creation-time ordered document id."""
    return str(ObjectId())


@dataclass
class Query:
    collection: str
    where: dict[str, Any] = field(default_factory=dict)
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None
    offset: int = 0


class Transaction(ABC):
    @abstractmethod
    async def get(self, ref: DocRef) -> Snapshot:
        ...

    @abstractmethod
    async def set(self, ref: DocRef, data: dict[str, Any], merge: bool = False) -> None:
        """Replace the document (or merge fields into it when ``merge``)."""
        ...

    @abstractmethod
    async def update(self, ref: DocRef, data: dict[str, Any]) -> None:
        """Partial update of an existing document; fails if it does not exist."""
        ...

    @abstractmethod
    async def delete(self, ref: DocRef) -> None:
        ...

    async def create(self, collection: str, data: dict[str, Any]) -> DocRef:
        """Write a new document under a generated id and return its ref."""
        ref = DocRef(collection, new_id())
        await self.set(ref, data)
        return ref


class LedgerStore(ABC):
    def ref(self, collection: str, doc_id: str | None = None) -> DocRef:
        """Ref to ``collection/doc_id``; allocates a fresh id when omitted."""
        return DocRef(collection, doc_id or new_id())

    @abstractmethod
    async def run_transaction(self, work: Callable[[Transaction], Awaitable[T]]) -> T:
        """Run ``work`` atomically, retrying it on write conflicts; return its result."""
        ...

    @abstractmethod
    async def get(self, ref: DocRef) -> Snapshot:
        """Non-transactional read."""
        ...

    @abstractmethod
    async def query(self, query: Query) -> list[Snapshot]:
        ...

    @abstractmethod
    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        ...

    async def add(self, collection: str, data: dict[str, Any]) -> DocRef:
        """Create one document outside any point-affecting transaction."""

        async def _work(tx: Transaction) -> DocRef:
            return await tx.create(collection, data)

        return await self.run_transaction(_work)

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None


_store: LedgerStore | None = None


def get_ledger_store() -> LedgerStore:
    """Process-wide store for the configured backend."""
    global _store
    if _store is None:
        settings = get_settings()
        if settings.ledger_backend == "memory":
            from wildwatch.ledger.memory import InMemoryLedgerStore
            _store = InMemoryLedgerStore(
                max_attempts=settings.transaction_max_attempts,
                timeout_seconds=settings.transaction_timeout_seconds,
            )
        else:
            from wildwatch.ledger.mongo import MongoLedgerStore
            _store = MongoLedgerStore(settings.mongodb_uri, settings.mongodb_db_name)
    return _store
