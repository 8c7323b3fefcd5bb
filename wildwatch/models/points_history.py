from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from wildwatch.ledger.base import Snapshot

POINTS_HISTORY = "points_history"


class PointsHistoryEntry(BaseModel):
    """Immutable audit record of one balance change."""

    id: str
    user_id: str
    delta: int  # positive = award, negative = reversal
    reason: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    balance_after: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "PointsHistoryEntry":
        return cls(**snap.to_dict())
