"""Audit log for critical actions."""

from typing import Any

from wildwatch.ledger.base import LedgerStore
from wildwatch.models.audit_log import AUDIT_LOGS, AuditLog


async def log_event(
    store: LedgerStore,
    user_id: str | None,
    event_type: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append to audit_logs collection."""
    entry = AuditLog(
        user_id=user_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata=metadata or {},
    )
    await store.add(AUDIT_LOGS, entry.model_dump())
