from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.accounts.schemas import UserSummary
from arsipdb.apps.audit import services as audit_services
from arsipdb.utils.dates import add_years, as_utc, month_key, month_start, period_start, utcnow

from . import models, retention, schemas

logger = logging.getLogger(__name__)

_AUDIT_FIELDS = (
    "code",
    "title",
    "category",
    "creation_date",
    "retention_period",
    "status",
    "location",
    "destruction_date",
)


def build_archive_read(archive: models.Archive, now: Optional[datetime] = None) -> schemas.ArchiveRead:
    now = now or utcnow()
    return schemas.ArchiveRead(
        id=archive.id,
        code=archive.code,
        title=archive.title,
        category=archive.category,
        creation_date=archive.creation_date,
        retention_period=archive.retention_period,
        status=archive.status,
        location=archive.location,
        description=archive.description,
        notes=archive.notes,
        destruction_date=archive.destruction_date,
        created_at=archive.created_at,
        updated_at=archive.updated_at,
        archived_by=UserSummary.model_validate(archive.archived_by),
        expiry_date=retention.expiry_date(archive.creation_date, archive.retention_period),
        retention_state=retention.retention_state(archive, now),
        days_till_expiry=retention.days_till_expiry(archive, now),
        near_expiry=retention.is_near_expiry(archive, now),
    )


def get_archive(db: Session, archive_id: str) -> models.Archive:
    archive = db.get(models.Archive, archive_id)
    if archive is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Archive not found")
    return archive


def _ensure_code_free(db: Session, code: str, *, exclude_id: Optional[str] = None) -> None:
    query = db.query(models.Archive.id).filter(models.Archive.code == code)
    if exclude_id:
        query = query.filter(models.Archive.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Archive code already exists")


def _schedule_destruction(archive: models.Archive) -> None:
    """Records scheduled for destruction without a date are due at expiry."""
    if archive.status == models.ArchiveStatus.SCHEDULED_DESTRUCTION and archive.destruction_date is None:
        archive.destruction_date = retention.expiry_date(archive.creation_date, archive.retention_period)


def create_archive(
    db: Session,
    *,
    payload: schemas.ArchiveCreate,
    actor: account_models.User,
) -> models.Archive:
    code = payload.code.strip()
    _ensure_code_free(db, code)

    archive = models.Archive(
        code=code,
        title=payload.title.strip(),
        category=payload.category.strip(),
        creation_date=payload.creation_date,
        retention_period=payload.retention_period,
        status=payload.status,
        location=payload.location.strip(),
        description=payload.description,
        notes=payload.notes,
        destruction_date=payload.destruction_date,
        archived_by_id=actor.id,
    )
    _schedule_destruction(archive)
    db.add(archive)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="archive",
        entity_id=archive.id,
        action="create",
        after=audit_services.snapshot(archive, _AUDIT_FIELDS),
    )
    return archive


def update_archive(
    db: Session,
    *,
    archive_id: str,
    payload: schemas.ArchiveUpdate,
    actor: account_models.User,
) -> models.Archive:
    archive = get_archive(db, archive_id)
    before = audit_services.snapshot(archive, _AUDIT_FIELDS)
    data = payload.model_dump(exclude_unset=True)

    code = data.pop("code", None)
    if code and code.strip() != archive.code:
        _ensure_code_free(db, code.strip(), exclude_id=archive.id)
        archive.code = code.strip()

    for field in ("title", "category", "creation_date", "retention_period", "status", "location"):
        value = data.pop(field, None)
        if value is not None:
            setattr(archive, field, value.strip() if isinstance(value, str) else value)

    for field, value in data.items():
        setattr(archive, field, value)

    _schedule_destruction(archive)
    db.add(archive)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="archive",
        entity_id=archive.id,
        action="update",
        before=before,
        after=audit_services.snapshot(archive, _AUDIT_FIELDS),
    )
    return archive


def delete_archive(db: Session, *, archive_id: str, actor: account_models.User) -> None:
    archive = get_archive(db, archive_id)
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="archive",
        entity_id=archive.id,
        action="delete",
        before=audit_services.snapshot(archive, _AUDIT_FIELDS),
        critical=True,
    )
    db.delete(archive)
    db.flush()


def list_archives(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    category: Optional[str] = None,
    archive_status: Optional[models.ArchiveStatus] = None,
) -> Tuple[List[models.Archive], int]:
    query = db.query(models.Archive)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.Archive.code.ilike(like),
                models.Archive.title.ilike(like),
                models.Archive.location.ilike(like),
                models.Archive.description.ilike(like),
            )
        )
    if category:
        query = query.filter(models.Archive.category.ilike(f"%{category.strip()}%"))
    if archive_status:
        query = query.filter(models.Archive.status == archive_status)

    total = query.order_by(None).count()
    rows = (
        query.order_by(models.Archive.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def archive_stats(
    db: Session,
    *,
    period: str = "month",
    now: Optional[datetime] = None,
) -> schemas.ArchiveStats:
    now = now or utcnow()
    since = period_start(period, now)
    archives = db.query(models.Archive).all()

    statuses = Counter(models.ArchiveStatus(a.status) for a in archives)
    states = Counter(retention.retention_state(a, now) for a in archives)
    categories = Counter(a.category for a in archives)

    created = [as_utc(a.created_at) for a in archives]
    recent = sum(1 for moment in created if since is None or moment >= since)

    breakdown_since = since or month_start(now).replace(year=now.year - 1, month=1)
    monthly = Counter(month_key(moment) for moment in created if moment >= breakdown_since)

    horizon = add_years(now, 1)
    nearing = sum(
        1
        for a in archives
        if a.status == models.ArchiveStatus.SCHEDULED_DESTRUCTION
        and a.destruction_date is not None
        and now <= as_utc(a.destruction_date) <= horizon
    )

    return schemas.ArchiveStats(
        period=period,
        total_archives=len(archives),
        permanent_archives=statuses[models.ArchiveStatus.PERMANENT],
        scheduled_for_destruction=statuses[models.ArchiveStatus.SCHEDULED_DESTRUCTION],
        under_review=statuses[models.ArchiveStatus.UNDER_REVIEW],
        recent_archives=recent,
        nearing_destruction=nearing,
        active=states[models.RetentionState.ACTIVE],
        expired=states[models.RetentionState.EXPIRED],
        destroyed=states[models.RetentionState.DESTROYED],
        status_stats={s.value.lower(): count for s, count in statuses.items()},
        categories_stats=[
            schemas.CategoryCount(category=name, count=count) for name, count in categories.most_common(10)
        ],
        monthly_data=[
            schemas.MonthlyArchiveCount(month=key, count=monthly[key])
            for key in sorted(monthly, reverse=True)[:12]
        ],
    )
