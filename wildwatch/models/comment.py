from datetime import datetime

from pydantic import BaseModel

from wildwatch.ledger.base import Snapshot

COMMENTS = "comments"


class Comment(BaseModel):
    id: str
    post_id: str
    user_id: str
    username: str = ""
    text: str
    created_at: datetime | None = None

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "Comment":
        return cls(**snap.to_dict())
