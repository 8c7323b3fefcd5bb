from datetime import datetime

from pydantic import BaseModel

from wildwatch.ledger.base import Snapshot

USERS = "users"
USERNAMES = "usernames"


class User(BaseModel):
    id: str
    name: str = ""
    username: str = ""
    account_type: str = "viewer"  # "viewer" | "creator" | "admin"
    points: int = 0  # written only by the points engine
    profile_photo_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_points_update: datetime | None = None

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "User":
        return cls(**snap.to_dict())

    @property
    def is_admin(self) -> bool:
        return self.account_type == "admin"
