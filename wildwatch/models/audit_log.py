from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

AUDIT_LOGS = "audit_logs"


class AuditLog(BaseModel):
    user_id: str | None = None  # optional for system events
    event_type: str
    entity_type: str
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
