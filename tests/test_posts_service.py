"""Publishing awards the bonus; deleting reverses everything the post earned, once."""

import pytest

from wildwatch.core.exceptions import BadRequestError, NotFoundError
from wildwatch.ledger.base import DocRef
from wildwatch.services import points as points_service
from wildwatch.services import posts as posts_service
from wildwatch.services.cache import points_changed

pytestmark = pytest.mark.asyncio


@pytest.fixture
def points_spy(monkeypatch):
    calls = []
    real = posts_service.apply_points_in

    async def _spy(tx, user_id, delta, reason, metadata=None):
        calls.append((user_id, delta, reason, metadata))
        return await real(tx, user_id, delta, reason, metadata)

    monkeypatch.setattr(posts_service, "apply_points_in", _spy)
    return calls


async def test_publish_blog_awards_bonus(store, make_user, rewards, points_spy):
    await make_user("creator1", points=0)

    post = await posts_service.create_post(
        store, "creator1", {"type": "blog", "title": "Hornbills of the Ghats", "blog_content": "..."}, rewards
    )

    assert post.creator_id == "creator1"
    assert post.like_count == post.comment_count == post.share_count == 0
    assert points_spy == [("creator1", 150, "Blog published", {"post_id": post.id})]
    assert await points_service.get_balance(store, "creator1") == 150


async def test_publish_photo_awards_social_bonus(store, make_user, rewards):
    await make_user("creator1", points=0)
    post = await posts_service.create_post(store, "creator1", {"type": "photo", "photo_url": "https://cdn/x.jpg"}, rewards)

    entries = await points_service.get_points_history(store, "creator1")
    assert [(e.delta, e.reason, e.metadata) for e in entries] == [(100, "Post published", {"post_id": post.id})]


async def test_publish_rejects_bad_payload(store, make_user):
    await make_user("creator1")
    with pytest.raises(BadRequestError):
        await posts_service.create_post(store, "creator1", {"type": "video"})
    with pytest.raises(BadRequestError):
        await posts_service.create_post(store, "creator1", {"type": "blog", "title": "  "})
    assert await store.count("posts") == 0
    assert await store.count("points_history") == 0


async def test_delete_reverses_in_single_entry(store, make_user, make_post, rewards, points_spy):
    await make_user("creator1", points=500)
    await make_post("p1", "creator1", type="blog", like_count=2, comment_count=3)

    assert await posts_service.delete_post(store, "p1", rewards) is True

    assert points_spy == [("creator1", -200, "Post deleted", {"post_id": "p1"})]
    assert not (await store.get(DocRef("posts", "p1"))).exists
    assert await points_service.get_balance(store, "creator1") == 300
    entries = await points_service.get_points_history(store, "creator1")
    assert [(e.delta, e.reason) for e in entries] == [(-200, "Post deleted")]
    assert await store.count("audit_logs", {"event_type": "post_deleted"}) == 1


async def test_delete_missing_post_is_noop(store, points_spy):
    calls = []
    unsubscribe = points_changed.subscribe(lambda: calls.append(1))
    try:
        assert await posts_service.delete_post(store, "nope") is False
    finally:
        unsubscribe()
    assert points_spy == []
    assert calls == []


async def test_publish_then_delete_nets_to_zero(store, make_user, rewards):
    await make_user("creator1", points=0)
    post = await posts_service.create_post(store, "creator1", {"type": "audio", "audio_url": "https://cdn/a.mp3"}, rewards)
    await posts_service.delete_post(store, post.id, rewards)

    assert await points_service.get_balance(store, "creator1") == 0
    assert await store.count("points_history", {"user_id": "creator1"}) == 2


async def test_reversal_for_post_by_type(rewards):
    assert posts_service.reversal_for_post("photoAudio", 4, 1, rewards) == -(100 + 40 + 10)
    assert posts_service.reversal_for_post("blog", 0, 0, rewards) == -150


async def test_delete_post_outside_model_still_reverses(store, make_user, make_post, rewards, points_spy):
    await make_user("creator1", points=500)
    await make_post("p1", "creator1", type="video", like_count="3", comment_count=None)

    assert await posts_service.delete_post(store, "p1", rewards) is True

    assert points_spy == [("creator1", -130, "Post deleted", {"post_id": "p1"})]
    assert not (await store.get(DocRef("posts", "p1"))).exists
    assert await points_service.get_balance(store, "creator1") == 370


async def test_delete_post_without_creator_reverses_nothing(store, make_post, rewards, points_spy):
    await make_post("p1", None, like_count=2)

    assert await posts_service.delete_post(store, "p1", rewards) is True

    assert points_spy == []
    assert not (await store.get(DocRef("posts", "p1"))).exists
    assert await store.count("points_history") == 0
    assert await store.count("audit_logs", {"event_type": "post_deleted"}) == 1


async def test_update_post_only_touches_content(store, make_post):
    await make_post("p1", "creator1", like_count=7)

    post = await posts_service.update_post(store, "p1", {"title": "Egrets", "like_count": 0, "creator_id": "x"})

    assert post.title == "Egrets"
    assert post.like_count == 7
    assert post.creator_id == "creator1"
    assert post.updated_at is not None
    with pytest.raises(NotFoundError):
        await posts_service.update_post(store, "nope", {"title": "x"})


async def test_listing(store, make_user, rewards):
    await make_user("creator1")
    await make_user("creator2")
    first = await posts_service.create_post(store, "creator1", {"type": "blog", "title": "One"}, rewards)
    second = await posts_service.create_post(store, "creator1", {"type": "blog", "title": "Two"}, rewards)
    other = await posts_service.create_post(store, "creator2", {"type": "photo"}, rewards)

    mine = await posts_service.list_creator_posts(store, "creator1")
    assert [p.id for p in mine] == [second.id, first.id]
    latest = await posts_service.list_latest_posts(store, 2)
    assert [p.id for p in latest] == [other.id, second.id]
    assert await posts_service.get_post(store, "nope") is None
    assert await posts_service.list_creator_posts(store, "") == []
