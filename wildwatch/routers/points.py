from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from wildwatch.core.pagination import Page, next_offset, paginate
from wildwatch.deps import get_current_user, get_store, require_admin
from wildwatch.ledger.base import LedgerStore
from wildwatch.models.points_history import PointsHistoryEntry
from wildwatch.models.user import User
from wildwatch.services import points as points_service
from wildwatch.services.cache import points_changed

router = APIRouter()


class PointsAdjustment(BaseModel):
    user_id: str
    delta: int
    reason: str = Field(min_length=1, max_length=200)
    metadata: dict[str, str | int | float | bool | None] = Field(default_factory=dict)


@router.get("/balance")
async def points_balance(user: User = Depends(get_current_user), store: LedgerStore = Depends(get_store)):
    """Return current point balance."""
    balance = await points_service.get_balance(store, user.id)
    return {"points": balance}


@router.get("/history", response_model=Page[PointsHistoryEntry])
async def points_history(
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Return history entries for current user (newest first)."""
    limit, offset = paginate(limit, offset)
    entries = await points_service.get_points_history(store, user.id, limit=limit, offset=offset)
    total = await points_service.count_points_history(store, user.id)
    return Page[PointsHistoryEntry](
        items=entries,
        limit=limit,
        offset=offset,
        total=total,
        next_offset=next_offset(limit, offset, total),
    )


@router.post("/adjust")
async def points_adjust(
    body: PointsAdjustment,
    admin: User = Depends(require_admin),
    store: LedgerStore = Depends(get_store),
):
    """Admin: manual award or correction. Unknown users are left untouched."""
    metadata = {**body.metadata, "adjusted_by": admin.id}
    balance_after = await points_service.apply_points(store, body.user_id, body.delta, body.reason, metadata)
    if balance_after is not None:
        points_changed.notify()
    return {"success": True, "applied": balance_after is not None, "points": balance_after}
