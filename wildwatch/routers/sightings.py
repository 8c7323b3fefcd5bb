from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from wildwatch.core.exceptions import NotFoundError
from wildwatch.deps import get_current_user, get_store, require_admin
from wildwatch.ledger.base import LedgerStore
from wildwatch.models.user import User
from wildwatch.services import sightings as sightings_service

router = APIRouter()


class SightingCreate(BaseModel):
    species: str = Field(min_length=1, max_length=200)
    location: str = Field(default="", max_length=300)
    description: str = Field(default="", max_length=5000)
    audio_url: str = ""
    image_urls: list[str] = Field(default_factory=list, max_length=10)


class SightingReject(BaseModel):
    reason: str = Field(default="", max_length=500)


@router.post("", status_code=201)
async def sighting_create(
    body: SightingCreate,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """Submit a sighting for review; the author earns the submission award."""
    sighting = await sightings_service.create_sighting(store, user.id, body.model_dump())
    return {"success": True, "sighting": sighting.model_dump()}


@router.get("")
async def sightings_list(
    store: LedgerStore = Depends(get_store),
    author_id: str | None = Query(None),
    species: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
):
    """Approved sightings, newest first."""
    sightings = await sightings_service.list_sightings(store, "approved", author_id, species, limit)
    return {"sightings": [s.model_dump() for s in sightings]}


@router.get("/pending")
async def sightings_pending(
    admin: User = Depends(require_admin),
    store: LedgerStore = Depends(get_store),
    limit: int = Query(50, ge=1, le=100),
):
    """Admin: review queue."""
    sightings = await sightings_service.list_sightings(store, "pending", limit=limit)
    return {"sightings": [s.model_dump() for s in sightings]}


@router.get("/{sighting_id}")
async def sighting_get(sighting_id: str, store: LedgerStore = Depends(get_store)):
    sighting = await sightings_service.get_sighting(store, sighting_id)
    if not sighting:
        raise NotFoundError("Sighting not found")
    return sighting.model_dump()


@router.post("/{sighting_id}/approve")
async def sighting_approve(
    sighting_id: str,
    admin: User = Depends(require_admin),
    store: LedgerStore = Depends(get_store),
):
    """Admin: approve and award the author. Repeat approvals award nothing."""
    approved = await sightings_service.approve_sighting(store, sighting_id, admin.id)
    return {"success": True, "approved": approved}


@router.post("/{sighting_id}/reject")
async def sighting_reject(
    sighting_id: str,
    body: SightingReject,
    admin: User = Depends(require_admin),
    store: LedgerStore = Depends(get_store),
):
    sighting = await sightings_service.reject_sighting(store, sighting_id, admin.id, body.reason)
    return {"success": True, "sighting": sighting.model_dump()}
