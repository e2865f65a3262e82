from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from clerkship_scheduler.models.activity_log import ActivityLog


def log_activity(
    db: Session,
    *,
    actor: str | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    record = ActivityLog(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)
    return record


def list_activity(
    db: Session,
    *,
    action: str | None = None,
    entity_id: str | None = None,
    limit: int = 500,
) -> list[ActivityLog]:
    query = select(ActivityLog)
    if action is not None:
        query = query.where(ActivityLog.action == action)
    if entity_id is not None:
        query = query.where(ActivityLog.entity_id == entity_id)
    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id).limit(limit)
    return list(db.execute(query).scalars())
