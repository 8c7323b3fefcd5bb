"""Points ledger: running balance plus append-only history, updated atomically."""

from dataclasses import dataclass
from typing import Any

from wildwatch.core.config import get_settings
from wildwatch.core.logging import get_logger
from wildwatch.core.pagination import paginate
from wildwatch.ledger.base import DocRef, LedgerStore, Query, Transaction, server_timestamp
from wildwatch.models.points_history import POINTS_HISTORY, PointsHistoryEntry
from wildwatch.models.user import USERS

log = get_logger(__name__)


@dataclass(frozen=True)
class RewardSchedule:
    blog_publish: int
    social_publish: int
    like_received: int
    comment_received: int
    share_received: int
    sighting_submission: int
    sighting_approved: int

    def publish_bonus(self, post_type: str) -> int:
        return self.blog_publish if post_type == "blog" else self.social_publish


def get_reward_schedule() -> RewardSchedule:
    s = get_settings()
    return RewardSchedule(
        blog_publish=s.points_blog_publish,
        social_publish=s.points_social_publish,
        like_received=s.points_like_received,
        comment_received=s.points_comment_received,
        share_received=s.points_share_received,
        sighting_submission=s.points_sighting_submission,
        sighting_approved=s.points_sighting_approved,
    )


async def apply_points_in(
    tx: Transaction,
    user_id: str,
    delta: int,
    reason: str,
    metadata: dict[str, Any] | None = None,
) -> int | None:
    """
    Update the user's balance and append a history entry inside ``tx``.
    Reads the user record before writing, so it can follow a caller's own reads.
    Returns the new balance, or None when the user does not exist (nothing written).
    """
    if delta == 0:
        log.debug("points_skipped_zero_delta", user_id=user_id, reason=reason)
        return None
    user_ref = DocRef(USERS, user_id)
    snap = await tx.get(user_ref)
    if not snap.exists:
        log.warning("points_skipped_missing_user", user_id=user_id, delta=delta, reason=reason)
        return None
    balance_after = int(snap.get("points") or 0) + delta
    await tx.update(
        user_ref,
        {
            "points": balance_after,
            "last_points_update": server_timestamp(),
            "updated_at": server_timestamp(),
        },
    )
    await tx.create(
        POINTS_HISTORY,
        {
            "user_id": user_id,
            "delta": delta,
            "reason": reason,
            "metadata": dict(metadata or {}),
            "balance_after": balance_after,
            "created_at": server_timestamp(),
        },
    )
    return balance_after


async def apply_points(
    store: LedgerStore,
    user_id: str,
    delta: int,
    reason: str,
    metadata: dict[str, Any] | None = None,
) -> int | None:
    """Apply ``delta`` to ``user_id`` in its own transaction. Missing users are a no-op."""

    async def _work(tx: Transaction) -> int | None:
        return await apply_points_in(tx, user_id, delta, reason, metadata)

    balance_after = await store.run_transaction(_work)
    if balance_after is not None:
        log.info("points_applied", user_id=user_id, delta=delta, reason=reason, balance_after=balance_after)
    return balance_after


async def get_balance(store: LedgerStore, user_id: str) -> int:
    """Return current balance for user (0 if no record)."""
    snap = await store.get(store.ref(USERS, user_id))
    return int(snap.get("points") or 0)


async def get_points_history(
    store: LedgerStore,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
) -> list[PointsHistoryEntry]:
    """History entries for user, newest first."""
    limit, offset = paginate(limit, offset)
    rows = await store.query(
        Query(
            POINTS_HISTORY,
            where={"user_id": user_id},
            order_by="created_at",
            descending=True,
            limit=limit,
            offset=offset,
        )
    )
    return [PointsHistoryEntry.from_snapshot(r) for r in rows]


async def count_points_history(store: LedgerStore, user_id: str) -> int:
    return await store.count(POINTS_HISTORY, {"user_id": user_id})
