import os
from typing import Any, AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("LEDGER_BACKEND", "memory")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")

from wildwatch.core.config import get_settings  # noqa: E402
from wildwatch.core.security import create_session_cookie  # noqa: E402
from wildwatch.deps import SESSION_COOKIE_NAME  # noqa: E402
from wildwatch.ledger.base import DocRef, Transaction  # noqa: E402
from wildwatch.ledger.memory import InMemoryLedgerStore  # noqa: E402
from wildwatch.services.leaderboard import leaderboard  # noqa: E402
from wildwatch.services.points import RewardSchedule  # noqa: E402


@pytest.fixture
def store() -> InMemoryLedgerStore:
    settings = get_settings()
    return InMemoryLedgerStore(
        max_attempts=settings.transaction_max_attempts,
        timeout_seconds=settings.transaction_timeout_seconds,
    )


@pytest.fixture
def rewards() -> RewardSchedule:
    return RewardSchedule(
        blog_publish=150,
        social_publish=100,
        like_received=10,
        comment_received=10,
        share_received=10,
        sighting_submission=10,
        sighting_approved=50,
    )


@pytest.fixture(autouse=True)
def _reset_leaderboard():
    leaderboard.invalidate()
    yield
    leaderboard.invalidate()


async def _put(store: InMemoryLedgerStore, ref: DocRef, data: dict[str, Any]) -> None:
    async def _work(tx: Transaction) -> None:
        await tx.set(ref, data)

    await store.run_transaction(_work)


@pytest.fixture
def make_user(store) -> Callable[..., Awaitable[str]]:
    async def _make(user_id: str, points: int = 0, **fields: Any) -> str:
        data = {"name": user_id.title(), "username": user_id, "account_type": "viewer", "points": points}
        data.update(fields)
        await _put(store, DocRef("users", user_id), data)
        return user_id

    return _make


@pytest.fixture
def make_post(store) -> Callable[..., Awaitable[str]]:
    async def _make(post_id: str, creator_id: str, type: str = "blog", **fields: Any) -> str:
        data = {
            "type": type,
            "creator_id": creator_id,
            "title": "Kingfisher at dawn",
            "like_count": 0,
            "comment_count": 0,
            "share_count": 0,
            "status": "published",
            "hidden": False,
        }
        data.update(fields)
        await _put(store, DocRef("posts", post_id), data)
        return post_id

    return _make


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _headers(user_id: str) -> dict[str, str]:
        cookie = create_session_cookie({"user_id": user_id})
        return {"Cookie": f"{SESSION_COOKIE_NAME}={cookie}"}

    return _headers


@pytest_asyncio.fixture
async def client(store) -> AsyncGenerator[AsyncClient, None]:
    from wildwatch.deps import get_store
    from wildwatch.main import app
    app.dependency_overrides[get_store] = lambda: store
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
