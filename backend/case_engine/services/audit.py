from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from case_engine.models.models import AuditLog


def log_audit(
    db: Session,
    *,
    actor_user_id: UUID | None,
    action: str,
    entity_type: str,
    entity_id: UUID | None,
    metadata: dict[str, Any] | None = None,
) -> AuditLog:
    """Write one audit event in the caller's unit of work.

    The row is flushed so later queries in the same session see it; the
    caller still owns the commit.
    """
    audit = AuditLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata_json=metadata or {},
    )
    db.add(audit)
    db.flush()
    return audit
