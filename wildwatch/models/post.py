from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from wildwatch.ledger.base import Snapshot

POSTS = "posts"

PostType = Literal["blog", "photo", "audio", "photoAudio"]


class Post(BaseModel):
    id: str
    type: PostType
    creator_id: str
    creator_username: str = ""
    title: str = ""
    blog_content: str = ""
    photo_url: str = ""
    audio_url: str = ""
    like_count: int = 0
    comment_count: int = 0
    share_count: int = 0
    status: str = "published"
    hidden: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "Post":
        return cls(**snap.to_dict())
