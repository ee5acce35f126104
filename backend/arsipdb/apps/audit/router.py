from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from arsipdb.apps.accounts.models import User
from arsipdb.database import get_read_db
from arsipdb.security import require_admin

from . import schemas, services


router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/", response_model=List[schemas.AuditEventRead])
def list_audit_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_admin),
):
    return services.list_audit_events(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_user_id=actor_user_id,
        start=start,
        end=end,
        skip=skip,
        limit=limit,
    )


@router.get("/{entity_type}/{entity_id}", response_model=List[schemas.AuditEventRead])
def entity_history(
    entity_type: str,
    entity_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_admin),
):
    return services.entity_history(db, entity_type, entity_id)
