"""Sighting reports and their moderation: pending -> approved | rejected.

The author earns the submission award when the report is written and the
approval award when an admin approves it, each in the same transaction as the
document change. Approving an approved sighting awards nothing.
"""

from typing import Any

from wildwatch.core.audit import log_event
from wildwatch.core.exceptions import BadRequestError, ConflictError, NotFoundError
from wildwatch.core.logging import get_logger
from wildwatch.core.pagination import paginate
from wildwatch.ledger.base import LedgerStore, Query, Transaction, server_timestamp
from wildwatch.models.sighting import SIGHTINGS, Sighting, SightingStatus
from wildwatch.services.cache import points_changed
from wildwatch.services.points import RewardSchedule, apply_points_in, get_reward_schedule

log = get_logger(__name__)


async def create_sighting(
    store: LedgerStore,
    author_id: str,
    payload: dict[str, Any],
    rewards: RewardSchedule | None = None,
) -> Sighting:
    """Write a pending sighting and award the submission points together."""
    rewards = rewards or get_reward_schedule()
    species = (payload.get("species") or "").strip()
    if not species:
        raise BadRequestError("Species required")
    sighting_ref = store.ref(SIGHTINGS)
    data = {
        "author_id": author_id,
        "species": species,
        "location": payload.get("location") or "",
        "description": payload.get("description") or "",
        "audio_url": payload.get("audio_url") or "",
        "image_urls": list(payload.get("image_urls") or []),
        "status": "pending",
        "verified": False,
        "rejection_reason": None,
        "reviewed_by": None,
        "created_at": server_timestamp(),
        "updated_at": server_timestamp(),
    }

    async def _work(tx: Transaction) -> None:
        await apply_points_in(
            tx, author_id, rewards.sighting_submission, "Sighting submitted", {"sighting_id": sighting_ref.id}
        )
        await tx.set(sighting_ref, data)

    await store.run_transaction(_work)
    log.info("sighting_submitted", sighting_id=sighting_ref.id, author_id=author_id, species=species)
    points_changed.notify()
    return Sighting.from_snapshot(await store.get(sighting_ref))


async def approve_sighting(
    store: LedgerStore,
    sighting_id: str,
    reviewer_id: str,
    rewards: RewardSchedule | None = None,
) -> bool:
    """
    Mark a sighting approved and award its author. Returns False, with nothing
    written, if it was already approved. A rejected sighting may be approved
    on review.
    """
    rewards = rewards or get_reward_schedule()
    sighting_ref = store.ref(SIGHTINGS, sighting_id)

    async def _work(tx: Transaction) -> str | None:
        snap = await tx.get(sighting_ref)
        if not snap.exists:
            raise NotFoundError("Sighting not found")
        if snap.get("status") == "approved":
            return None
        author_id = snap.get("author_id")
        if author_id:
            await apply_points_in(
                tx, author_id, rewards.sighting_approved, "Sighting approved", {"sighting_id": sighting_id}
            )
        await tx.update(
            sighting_ref,
            {
                "status": "approved",
                "verified": True,
                "rejection_reason": None,
                "reviewed_by": reviewer_id,
                "updated_at": server_timestamp(),
            },
        )
        return author_id or ""

    author_id = await store.run_transaction(_work)
    if author_id is None:
        log.info("sighting_already_approved", sighting_id=sighting_id)
        return False
    log.info("sighting_approved", sighting_id=sighting_id, author_id=author_id, reviewer_id=reviewer_id)
    points_changed.notify()
    await log_event(store, reviewer_id, "sighting_approved", "sighting", sighting_id, {"author_id": author_id})
    return True


async def reject_sighting(store: LedgerStore, sighting_id: str, reviewer_id: str, reason: str = "") -> Sighting:
    """Mark a pending (or already rejected) sighting rejected. No points change."""
    sighting_ref = store.ref(SIGHTINGS, sighting_id)

    async def _work(tx: Transaction) -> None:
        snap = await tx.get(sighting_ref)
        if not snap.exists:
            raise NotFoundError("Sighting not found")
        if snap.get("status") == "approved":
            raise ConflictError("Approved sightings cannot be rejected", details={"sighting_id": sighting_id})
        await tx.update(
            sighting_ref,
            {
                "status": "rejected",
                "verified": False,
                "rejection_reason": reason,
                "reviewed_by": reviewer_id,
                "updated_at": server_timestamp(),
            },
        )

    await store.run_transaction(_work)
    log.info("sighting_rejected", sighting_id=sighting_id, reviewer_id=reviewer_id)
    await log_event(store, reviewer_id, "sighting_rejected", "sighting", sighting_id, {"reason": reason})
    return Sighting.from_snapshot(await store.get(sighting_ref))


async def get_sighting(store: LedgerStore, sighting_id: str) -> Sighting | None:
    snap = await store.get(store.ref(SIGHTINGS, sighting_id))
    return Sighting.from_snapshot(snap) if snap.exists else None


async def list_sightings(
    store: LedgerStore,
    status: SightingStatus | None = "approved",
    author_id: str | None = None,
    species: str | None = None,
    limit: int = 20,
) -> list[Sighting]:
    """Sightings newest first, filtered by status (approved by default), author and species."""
    limit, _ = paginate(limit, 0, max_limit=100)
    where: dict[str, Any] = {}
    if status:
        where["status"] = status
    if author_id:
        where["author_id"] = author_id
    if species:
        where["species"] = species
    rows = await store.query(Query(SIGHTINGS, where=where, order_by="created_at", descending=True, limit=limit))
    return [Sighting.from_snapshot(r) for r in rows]
