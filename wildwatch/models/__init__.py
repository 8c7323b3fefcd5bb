from wildwatch.models.user import User
from wildwatch.models.points_history import PointsHistoryEntry
from wildwatch.models.post import Post
from wildwatch.models.comment import Comment
from wildwatch.models.sighting import Sighting
from wildwatch.models.audit_log import AuditLog

__all__ = [
    "User",
    "PointsHistoryEntry",
    "Post",
    "Comment",
    "Sighting",
    "AuditLog",
]
