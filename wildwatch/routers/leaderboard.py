from fastapi import APIRouter, Depends, Query

from wildwatch.deps import get_current_user, get_store
from wildwatch.ledger.base import LedgerStore
from wildwatch.models.user import User
from wildwatch.services import leaderboard as leaderboard_service

router = APIRouter()


@router.get("")
async def leaderboard_top(
    store: LedgerStore = Depends(get_store),
    limit: int = Query(100, ge=1, le=500),
    refresh: bool = Query(False),
):
    """Users ranked by points."""
    rows = await leaderboard_service.calculate_leaderboard(store, limit=limit, force_refresh=refresh)
    return {"leaderboard": rows}


@router.get("/me")
async def leaderboard_me(user: User = Depends(get_current_user), store: LedgerStore = Depends(get_store)):
    """Current user's rank and nearby competitors."""
    return await leaderboard_service.get_user_rank_info(store, user.id)
