from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Iterable, List, Optional, Sequence

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas

logger = logging.getLogger(__name__)


def snapshot(obj: Any, fields: Iterable[str]) -> dict:
    """JSON-safe dict of the named attributes, for before/after payloads."""
    return jsonable_encoder({name: getattr(obj, name, None) for name in fields})


def changed_fields(before: dict, after: dict) -> List[str]:
    return sorted(key for key in after if before.get(key) != after.get(key))


def record_event(db: Session, data: schemas.AuditEventCreate) -> models.AuditEvent:
    event = models.AuditEvent(
        entity_type=data.entity_type,
        entity_id=str(data.entity_id),
        action=data.action,
        actor_user_id=data.actor_user_id,
        before=data.before,
        after=data.after,
        metadata_json=data.metadata,
    )
    if data.occurred_at is not None:
        event.occurred_at = data.occurred_at
    db.add(event)
    db.flush()
    return event


def log_event(
    db: Session,
    *,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    action: str,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    metadata: Optional[dict] = None,
    critical: bool = False,
) -> Optional[models.AuditEvent]:
    """
    Write an audit row inside the caller's transaction, so it commits or
    rolls back together with the change it describes.

    Deletes, reviews and user administration pass ``critical=True``: a
    failure to record them aborts the change. Anything else is written
    under a savepoint; if that fails only the savepoint is rolled back and
    the change goes ahead without its audit row.
    """
    if before is not None and after is not None:
        metadata = {**(metadata or {}), "changed": changed_fields(before, after)}
    try:
        data = schemas.AuditEventCreate(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            actor_user_id=actor_user_id,
            before=before,
            after=after,
            metadata=metadata,
        )
        if critical:
            return record_event(db, data)
        with db.begin_nested():
            return record_event(db, data)
    except (SQLAlchemyError, ValueError):
        if critical:
            logger.error(
                "Audit event could not be written; aborting %s on %s %s",
                action,
                entity_type,
                entity_id,
            )
            raise
        logger.warning(
            "Audit event skipped",
            extra={"entity_type": entity_type, "entity_id": entity_id, "action": action},
            exc_info=True,
        )
        return None


def list_audit_events(
    db: Session,
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 200,
) -> Sequence[models.AuditEvent]:
    Event = models.AuditEvent
    query = db.query(Event)
    for column, value in (
        (Event.entity_type, entity_type),
        (Event.entity_id, entity_id),
        (Event.action, action),
        (Event.actor_user_id, actor_user_id),
    ):
        if value:
            query = query.filter(column == value)
    if start:
        query = query.filter(Event.occurred_at >= start)
    if end:
        query = query.filter(Event.occurred_at <= end)
    return query.order_by(Event.occurred_at.desc(), Event.id.desc()).offset(skip).limit(limit).all()


def entity_history(db: Session, entity_type: str, entity_id: str) -> Sequence[models.AuditEvent]:
    """Every event for one record, oldest first."""
    return (
        db.query(models.AuditEvent)
        .filter(
            models.AuditEvent.entity_type == entity_type,
            models.AuditEvent.entity_id == entity_id,
        )
        .order_by(models.AuditEvent.occurred_at.asc(), models.AuditEvent.id.asc())
        .all()
    )
