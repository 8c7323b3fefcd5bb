"""Points engine: balance and history change together or not at all."""

import asyncio

import pytest

from wildwatch.ledger.base import DocRef, Query
from wildwatch.services import points as points_service

pytestmark = pytest.mark.asyncio


async def _history(store, user_id):
    return await store.query(Query("points_history", where={"user_id": user_id}))


async def test_apply_points_updates_balance_and_history(store, make_user):
    await make_user("u1", points=50)
    balance = await points_service.apply_points(store, "u1", 10, "Liked post", {"post_id": "p1"})

    assert balance == 60
    assert await points_service.get_balance(store, "u1") == 60
    rows = await _history(store, "u1")
    assert len(rows) == 1
    entry = rows[0]
    assert entry.get("user_id") == "u1"
    assert entry.get("delta") == 10
    assert entry.get("reason") == "Liked post"
    assert entry.get("metadata") == {"post_id": "p1"}
    assert entry.get("balance_after") == 60
    assert entry.get("created_at") is not None


async def test_apply_points_missing_user_leaves_no_trace(store):
    balance = await points_service.apply_points(store, "u1", 10, "Liked post", {"post_id": "p1"})

    assert balance is None
    assert not (await store.get(DocRef("users", "u1"))).exists
    assert await store.count("points_history") == 0


async def test_zero_delta_is_noop(store, make_user):
    await make_user("u1", points=5)
    assert await points_service.apply_points(store, "u1", 0, "Nothing") is None
    assert await points_service.get_balance(store, "u1") == 5
    assert await store.count("points_history") == 0


async def test_balance_may_go_negative(store, make_user):
    await make_user("u1", points=20)
    assert await points_service.apply_points(store, "u1", -200, "Post deleted", {"post_id": "p1"}) == -180


async def test_balance_equals_sum_of_history(store, make_user):
    await make_user("u1")
    deltas = [150, 10, 10, -10, 10, -170, 30]
    for d in deltas:
        await points_service.apply_points(store, "u1", d, "Adjustment")

    rows = await _history(store, "u1")
    assert len(rows) == len(deltas)
    assert sum(r.get("delta") for r in rows) == await points_service.get_balance(store, "u1") == sum(deltas)


async def test_concurrent_awards_are_not_lost(store, make_user):
    await make_user("u1", points=0)
    await asyncio.gather(*(points_service.apply_points(store, "u1", 10, "Liked post") for _ in range(10)))

    assert await points_service.get_balance(store, "u1") == 100
    assert await store.count("points_history", {"user_id": "u1"}) == 10


async def test_history_newest_first_and_paged(store, make_user):
    await make_user("u1")
    for i in range(5):
        await points_service.apply_points(store, "u1", i + 1, f"Award {i}")
    await make_user("u2")
    await points_service.apply_points(store, "u2", 99, "Other user")

    page = await points_service.get_points_history(store, "u1", limit=2, offset=0)
    assert [e.reason for e in page] == ["Award 4", "Award 3"]
    page = await points_service.get_points_history(store, "u1", limit=2, offset=4)
    assert [e.reason for e in page] == ["Award 0"]
    assert await points_service.count_points_history(store, "u1") == 5


async def test_get_balance_unknown_user_is_zero(store):
    assert await points_service.get_balance(store, "ghost") == 0


async def test_reward_schedule_defaults():
    rewards = points_service.get_reward_schedule()
    assert rewards.publish_bonus("blog") == 150
    assert rewards.publish_bonus("photo") == 100
    assert rewards.like_received == rewards.comment_received == rewards.share_received == 10
