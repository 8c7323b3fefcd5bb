"""Leaderboard ranked by point totals, cached in-process until points change."""

import sys
import time
from typing import Any

from wildwatch.core.config import get_settings
from wildwatch.core.logging import get_logger
from wildwatch.ledger.base import LedgerStore, Query
from wildwatch.models.user import USERS
from wildwatch.services.cache import points_changed

log = get_logger(__name__)

PRIZES = {
    1: {"amount": 10000, "label": "₹10,000"},
    2: {"amount": 7500, "label": "₹7,500"},
    3: {"amount": 5000, "label": "₹5,000"},
    4: {"amount": 2500, "label": "₹2,500"},
}

MIN_FETCH = 100


class Leaderboard:
    def __init__(self, ttl_seconds: float | None = None) -> None:
        self.ttl_seconds = ttl_seconds
        self._rows: list[dict[str, Any]] | None = None
        self._fetched_at = 0.0
        self._fetched_limit = 0
        self._generation = 0

    def _ttl(self) -> float:
        if self.ttl_seconds is not None:
            return self.ttl_seconds
        return get_settings().leaderboard_cache_ttl_seconds

    def invalidate(self) -> None:
        self._generation += 1
        self._rows = None
        self._fetched_at = 0.0
        self._fetched_limit = 0

    def is_cached(self, limit: int) -> bool:
        return (
            self._rows is not None
            and self._fetched_limit >= limit
            and time.monotonic() - self._fetched_at < self._ttl()
        )

    async def calculate(self, store: LedgerStore, limit: int = 100, force_refresh: bool = False) -> list[dict[str, Any]]:
        """Users ranked by points (admins excluded), with prizes for the top ranks."""
        if not force_refresh and self.is_cached(limit):
            return self._rows[:limit]
        fetch = max(limit, MIN_FETCH)
        generation = self._generation
        try:
            snaps = await store.query(Query(USERS, order_by="points", descending=True, limit=fetch))
        except Exception:
            if self._rows is None:
                raise
            log.exception("leaderboard_stale_cache_served")
            return self._rows[:limit]

        rows = []
        for snap in snaps:
            if snap.get("account_type") == "admin":
                continue
            rows.append(
                {
                    "user_id": snap.id,
                    "name": snap.get("name") or "Anonymous",
                    "username": snap.get("username") or "user",
                    "points": int(snap.get("points") or 0),
                    "account_type": snap.get("account_type") or "viewer",
                    "profile_photo_url": snap.get("profile_photo_url"),
                }
            )
        rows.sort(key=lambda r: r["points"], reverse=True)
        for i, row in enumerate(rows, start=1):
            row["rank"] = i
            row["prize"] = PRIZES.get(i)

        if generation != self._generation:
            # points changed while the query ran; these rows may predate the change
            log.debug("leaderboard_result_not_cached", users=len(rows))
            return rows[:limit]
        self._rows = rows
        self._fetched_at = time.monotonic()
        # a short result means every user was fetched, so any limit is served from cache
        self._fetched_limit = fetch if len(snaps) >= fetch else sys.maxsize
        log.debug("leaderboard_calculated", users=len(rows))
        return rows[:limit]

    async def user_rank_info(self, store: LedgerStore, user_id: str) -> dict[str, Any]:
        """Rank of user plus up to two neighbours above and below."""
        rows = await self.calculate(store)
        index = next((i for i, r in enumerate(rows) if r["user_id"] == user_id), None)
        if index is None:
            return {"rank": None, "user": None, "above": [], "below": []}
        return {
            "rank": rows[index]["rank"],
            "user": rows[index],
            "above": rows[max(0, index - 2):index],
            "below": rows[index + 1:index + 3],
        }


leaderboard = Leaderboard()
points_changed.subscribe(leaderboard.invalidate)


async def calculate_leaderboard(store: LedgerStore, limit: int = 100, force_refresh: bool = False) -> list[dict[str, Any]]:
    return await leaderboard.calculate(store, limit, force_refresh)


async def get_user_rank_info(store: LedgerStore, user_id: str) -> dict[str, Any]:
    return await leaderboard.user_rank_info(store, user_id)
