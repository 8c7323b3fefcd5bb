"""Likes, shares and comments, each committed together with the points they earn."""

from wildwatch.core.exceptions import NotFoundError
from wildwatch.core.logging import get_logger
from wildwatch.ledger.base import LedgerStore, Query, Transaction, increment, server_timestamp
from wildwatch.models.comment import COMMENTS, Comment
from wildwatch.models.like import LIKES, like_id
from wildwatch.models.post import POSTS
from wildwatch.services.cache import points_changed
from wildwatch.services.points import RewardSchedule, apply_points_in, get_reward_schedule

log = get_logger(__name__)


async def get_like_status(store: LedgerStore, post_id: str, user_id: str) -> bool:
    snap = await store.get(store.ref(LIKES, like_id(post_id, user_id)))
    return snap.exists


async def toggle_like(
    store: LedgerStore,
    post_id: str,
    viewer_id: str,
    rewards: RewardSchedule | None = None,
) -> bool:
    """
    Like or unlike a post. The like record, the post's like_count and the
    creator's points change in one transaction. Returns True if the post is now liked.
    Raises NotFoundError (nothing written) if the post does not exist.
    """
    rewards = rewards or get_reward_schedule()
    post_ref = store.ref(POSTS, post_id)
    like_ref = store.ref(LIKES, like_id(post_id, viewer_id))

    async def _work(tx: Transaction) -> bool:
        # post before like: keeps the read set identical across retries
        post_snap = await tx.get(post_ref)
        if not post_snap.exists:
            raise NotFoundError("Post not found")
        like_snap = await tx.get(like_ref)
        creator_id = post_snap.get("creator_id")
        meta = {"post_id": post_id}
        if like_snap.exists:
            await apply_points_in(tx, creator_id, -rewards.like_received, "Like removed", meta)
            await tx.delete(like_ref)
            await tx.update(post_ref, {"like_count": increment(-1)})
            return False
        await apply_points_in(tx, creator_id, rewards.like_received, "Liked post", meta)
        await tx.set(like_ref, {"post_id": post_id, "user_id": viewer_id, "created_at": server_timestamp()})
        await tx.update(post_ref, {"like_count": increment(1)})
        return True

    liked = await store.run_transaction(_work)
    log.info("like_toggled", post_id=post_id, user_id=viewer_id, liked=liked)
    points_changed.notify()
    return liked


async def record_share(store: LedgerStore, post_id: str, rewards: RewardSchedule | None = None) -> bool:
    """Count a share and award the creator. Unknown posts are ignored (returns False)."""
    rewards = rewards or get_reward_schedule()
    post_ref = store.ref(POSTS, post_id)
    snap = await store.get(post_ref)
    if not snap.exists:
        log.info("share_skipped_missing_post", post_id=post_id)
        return False

    async def _work(tx: Transaction) -> bool:
        post_snap = await tx.get(post_ref)
        if not post_snap.exists:
            return False
        await apply_points_in(tx, post_snap.get("creator_id"), rewards.share_received, "Post shared", {"post_id": post_id})
        await tx.update(post_ref, {"share_count": increment(1)})
        return True

    shared = await store.run_transaction(_work)
    if shared:
        log.info("post_shared", post_id=post_id)
        points_changed.notify()
    return shared


async def add_comment(
    store: LedgerStore,
    post_id: str,
    user_id: str,
    username: str,
    text: str,
    rewards: RewardSchedule | None = None,
) -> Comment:
    """Add a comment, bump comment_count and award the creator in one transaction."""
    rewards = rewards or get_reward_schedule()
    post_ref = store.ref(POSTS, post_id)
    comment_ref = store.ref(COMMENTS)
    data = {"post_id": post_id, "user_id": user_id, "username": username, "text": text}

    async def _work(tx: Transaction) -> None:
        post_snap = await tx.get(post_ref)
        if not post_snap.exists:
            raise NotFoundError("Post not found")
        await apply_points_in(
            tx, post_snap.get("creator_id"), rewards.comment_received, "Comment received", {"post_id": post_id}
        )
        await tx.set(comment_ref, {**data, "created_at": server_timestamp()})
        await tx.update(post_ref, {"comment_count": increment(1)})

    await store.run_transaction(_work)
    points_changed.notify()
    snap = await store.get(comment_ref)
    return Comment.from_snapshot(snap)


async def delete_comment(
    store: LedgerStore,
    post_id: str,
    comment_id: str,
    rewards: RewardSchedule | None = None,
) -> bool:
    """Remove a comment and reverse its award. Returns False if there was nothing to delete."""
    rewards = rewards or get_reward_schedule()
    post_ref = store.ref(POSTS, post_id)
    comment_ref = store.ref(COMMENTS, comment_id)

    async def _work(tx: Transaction) -> bool:
        post_snap = await tx.get(post_ref)
        comment_snap = await tx.get(comment_ref)
        if not comment_snap.exists or comment_snap.get("post_id") != post_id:
            return False
        if post_snap.exists:
            await apply_points_in(
                tx, post_snap.get("creator_id"), -rewards.comment_received, "Comment removed", {"post_id": post_id}
            )
            await tx.update(post_ref, {"comment_count": increment(-1)})
        await tx.delete(comment_ref)
        return True

    deleted = await store.run_transaction(_work)
    if deleted:
        points_changed.notify()
    return deleted


async def get_comment(store: LedgerStore, comment_id: str) -> Comment | None:
    snap = await store.get(store.ref(COMMENTS, comment_id))
    return Comment.from_snapshot(snap) if snap.exists else None


async def list_comments(store: LedgerStore, post_id: str) -> list[Comment]:
    """Comments on a post, oldest first."""
    rows = await store.query(Query(COMMENTS, where={"post_id": post_id}, order_by="created_at"))
    return [Comment.from_snapshot(r) for r in rows]
