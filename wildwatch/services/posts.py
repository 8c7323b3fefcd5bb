"""Post publishing and deletion, with the publish bonus and its reversal."""

from typing import Any, get_args

from wildwatch.core.audit import log_event
from wildwatch.core.exceptions import BadRequestError, NotFoundError
from wildwatch.core.logging import get_logger
from wildwatch.core.pagination import paginate
from wildwatch.ledger.base import LedgerStore, Query, Snapshot, Transaction, server_timestamp
from wildwatch.models.post import POSTS, Post, PostType
from wildwatch.services.cache import points_changed
from wildwatch.services.points import RewardSchedule, apply_points_in, get_reward_schedule

log = get_logger(__name__)

EDITABLE_FIELDS = ("title", "blog_content", "photo_url", "audio_url")


def reversal_for_post(post_type: str, like_count: int, comment_count: int, rewards: RewardSchedule) -> int:
    """Negative of everything a post earned its creator, from its stored counters."""
    earned = (
        rewards.publish_bonus(post_type)
        + like_count * rewards.like_received
        + comment_count * rewards.comment_received
    )
    return -earned


def _counter(snap: Snapshot, field_name: str) -> int:
    try:
        return max(int(snap.get(field_name) or 0), 0)
    except (TypeError, ValueError):
        return 0


async def create_post(
    store: LedgerStore,
    creator_id: str,
    payload: dict[str, Any],
    rewards: RewardSchedule | None = None,
) -> Post:
    """Write a new post with zeroed counters and award the publish bonus in the same transaction."""
    rewards = rewards or get_reward_schedule()
    post_type = payload.get("type") or "blog"
    if post_type not in get_args(PostType):
        raise BadRequestError(f"Invalid post type: {post_type}")
    if post_type == "blog" and not (payload.get("title") or "").strip():
        raise BadRequestError("Blog title required")
    post_ref = store.ref(POSTS)
    data = {
        "type": post_type,
        "creator_id": creator_id,
        "creator_username": payload.get("creator_username") or "",
        "title": payload.get("title") or "",
        "blog_content": payload.get("blog_content") or "",
        "photo_url": payload.get("photo_url") or "",
        "audio_url": payload.get("audio_url") or "",
        "like_count": 0,
        "comment_count": 0,
        "share_count": 0,
        "status": "published",
        "hidden": False,
        "created_at": server_timestamp(),
        "updated_at": server_timestamp(),
    }
    reason = "Blog published" if post_type == "blog" else "Post published"

    async def _work(tx: Transaction) -> None:
        await apply_points_in(tx, creator_id, rewards.publish_bonus(post_type), reason, {"post_id": post_ref.id})
        await tx.set(post_ref, data)

    await store.run_transaction(_work)
    log.info("post_published", post_id=post_ref.id, creator_id=creator_id, type=post_type)
    points_changed.notify()
    return Post.from_snapshot(await store.get(post_ref))


async def delete_post(
    store: LedgerStore,
    post_id: str,
    rewards: RewardSchedule | None = None,
) -> bool:
    """
    Delete a post and reverse, in a single history entry, every point it earned.
    A missing post is a no-op (returns False). Likes and comments are not cascaded.
    Fields are read straight from the stored document, so a post that no longer
    fits the Post model is still deleted; one without a creator reverses nothing.
    """
    rewards = rewards or get_reward_schedule()
    post_ref = store.ref(POSTS, post_id)

    async def _work(tx: Transaction) -> dict[str, Any] | None:
        snap = await tx.get(post_ref)
        if not snap.exists:
            return None
        deleted = {
            "creator_id": snap.get("creator_id") or None,
            "type": str(snap.get("type") or ""),
            "like_count": _counter(snap, "like_count"),
            "comment_count": _counter(snap, "comment_count"),
        }
        deleted["reversal"] = reversal_for_post(
            deleted["type"], deleted["like_count"], deleted["comment_count"], rewards
        )
        if deleted["creator_id"]:
            await apply_points_in(tx, deleted["creator_id"], deleted["reversal"], "Post deleted", {"post_id": post_id})
        await tx.delete(post_ref)
        return deleted

    deleted = await store.run_transaction(_work)
    if deleted is None:
        log.info("delete_skipped_missing_post", post_id=post_id)
        return False
    if deleted["creator_id"] is None:
        log.warning("post_deleted_without_creator", post_id=post_id)
    log.info("post_deleted", post_id=post_id, creator_id=deleted["creator_id"], reversal=deleted["reversal"])
    points_changed.notify()
    await log_event(
        store,
        deleted["creator_id"],
        "post_deleted",
        "post",
        post_id,
        {"type": deleted["type"], "like_count": deleted["like_count"], "comment_count": deleted["comment_count"]},
    )
    return True


async def update_post(store: LedgerStore, post_id: str, fields: dict[str, Any]) -> Post:
    """Edit content fields. Counters and ownership are never touched here."""
    changes = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS and v is not None}
    post_ref = store.ref(POSTS, post_id)

    async def _work(tx: Transaction) -> None:
        snap = await tx.get(post_ref)
        if not snap.exists:
            raise NotFoundError("Post not found")
        await tx.update(post_ref, {**changes, "updated_at": server_timestamp()})

    await store.run_transaction(_work)
    return Post.from_snapshot(await store.get(post_ref))


async def get_post(store: LedgerStore, post_id: str) -> Post | None:
    snap = await store.get(store.ref(POSTS, post_id))
    return Post.from_snapshot(snap) if snap.exists else None


async def get_post_owner(store: LedgerStore, post_id: str) -> tuple[bool, str | None]:
    """Whether the post exists and its raw creator id, without validating the rest of it."""
    snap = await store.get(store.ref(POSTS, post_id))
    return snap.exists, snap.get("creator_id") or None


async def list_creator_posts(store: LedgerStore, creator_id: str) -> list[Post]:
    """All posts by creator, newest first."""
    if not creator_id:
        return []
    rows = await store.query(Query(POSTS, where={"creator_id": creator_id}, order_by="created_at", descending=True))
    return [Post.from_snapshot(r) for r in rows]


async def list_latest_posts(store: LedgerStore, count: int = 3) -> list[Post]:
    limit, _ = paginate(count, 0, max_limit=50)
    rows = await store.query(Query(POSTS, where={"hidden": False}, order_by="created_at", descending=True, limit=limit))
    return [Post.from_snapshot(r) for r in rows]
