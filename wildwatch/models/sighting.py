from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from wildwatch.ledger.base import Snapshot

SIGHTINGS = "sightings"

SightingStatus = Literal["pending", "approved", "rejected"]


class Sighting(BaseModel):
    id: str
    author_id: str
    species: str = ""
    location: str = ""
    description: str = ""
    audio_url: str = ""
    image_urls: list[str] = Field(default_factory=list)
    status: SightingStatus = "pending"
    verified: bool = False  # true once approved
    rejection_reason: str | None = None
    reviewed_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "Sighting":
        return cls(**snap.to_dict())
