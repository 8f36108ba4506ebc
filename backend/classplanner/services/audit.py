from __future__ import annotations

from sqlalchemy.orm import Session

from classplanner.models.activity_log import ActivityLog


def log_activity(
    db: Session,
    *,
    actor: str | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> None:
    record = ActivityLog(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)
