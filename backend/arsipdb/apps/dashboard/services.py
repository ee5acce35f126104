"""
Read-only summaries for the landing page. Nothing here writes.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from arsipdb.apps.archives import models as archive_models
from arsipdb.apps.correspondence import models as letter_models
from arsipdb.apps.distribution import models as distribution_models
from arsipdb.apps.inventory import models as inventory_models
from arsipdb.apps.purchasing import models as purchasing_models
from arsipdb.utils.dates import as_utc, month_start, utcnow

from . import schemas

ACTIVITY_WINDOW_DAYS = 7
DESTRUCTION_NOTICE_DAYS = 7


def _count(query) -> int:
    return query.scalar() or 0


def dashboard_stats(db: Session, *, now: Optional[datetime] = None) -> schemas.DashboardStats:
    now = now or utcnow()
    since = month_start(now)
    item = inventory_models.InventoryItem

    def letters_of(letter_type: letter_models.LetterType) -> int:
        return _count(
            db.query(func.count(letter_models.Letter.id)).filter(
                letter_models.Letter.type == letter_type,
                letter_models.Letter.created_at >= since,
            )
        )

    return schemas.DashboardStats(
        pending_requests=_count(
            db.query(func.count(purchasing_models.PurchaseRequest.id)).filter(
                purchasing_models.PurchaseRequest.status == purchasing_models.PurchaseRequestStatus.PENDING
            )
        ),
        received_this_month=_count(
            db.query(func.count(purchasing_models.Reception.id)).filter(
                purchasing_models.Reception.receipt_date >= since
            )
        ),
        distributed_this_month=_count(
            db.query(func.count(distribution_models.Distribution.id)).filter(
                distribution_models.Distribution.distribution_date >= since
            )
        ),
        total_inventory=_count(db.query(func.count(item.id))),
        low_stock_items=_count(
            db.query(func.count(item.id)).filter(item.stock > 0, item.stock <= item.min_stock)
        ),
        critical_stock_items=_count(db.query(func.count(item.id)).filter(item.stock <= 0)),
        incoming_letters_this_month=letters_of(letter_models.LetterType.INCOMING),
        outgoing_letters_this_month=letters_of(letter_models.LetterType.OUTGOING),
    )


def _newest_first(activities: List[schemas.Activity], limit: int) -> List[schemas.Activity]:
    return sorted(activities, key=lambda a: as_utc(a.occurred_at), reverse=True)[:limit]


def _inventory_activities(db: Session, since: datetime, limit: int) -> List[schemas.Activity]:
    activities: List[schemas.Activity] = []

    requests = (
        db.query(purchasing_models.PurchaseRequest)
        .filter(purchasing_models.PurchaseRequest.created_at >= since)
        .order_by(purchasing_models.PurchaseRequest.created_at.desc())
        .limit(limit)
        .all()
    )
    for pr in requests:
        first_line = pr.item_name or (pr.items[0].item_name if pr.items else pr.request_number)
        activities.append(
            schemas.Activity(
                id=pr.id,
                type="purchase_request",
                title=f"Request for {first_line}",
                status=pr.status.value,
                actor_name=pr.requested_by.name if pr.requested_by else None,
                occurred_at=pr.created_at,
            )
        )

    receptions = (
        db.query(purchasing_models.Reception)
        .filter(purchasing_models.Reception.receipt_date >= since)
        .order_by(purchasing_models.Reception.receipt_date.desc())
        .limit(limit)
        .all()
    )
    for reception in receptions:
        activities.append(
            schemas.Activity(
                id=reception.id,
                type="reception",
                title=f"Reception of {reception.item_name}",
                status=reception.status.value,
                actor_name=reception.received_by.name if reception.received_by else None,
                occurred_at=reception.receipt_date,
            )
        )

    distributions = (
        db.query(distribution_models.Distribution)
        .filter(distribution_models.Distribution.distribution_date >= since)
        .order_by(distribution_models.Distribution.distribution_date.desc())
        .limit(limit)
        .all()
    )
    for distribution in distributions:
        if len(distribution.items) > 1:
            what = f"{len(distribution.items)} items"
        else:
            what = distribution.items[0].item_name if distribution.items else "items"
        activities.append(
            schemas.Activity(
                id=distribution.id,
                type="distribution",
                title=f"Distribution of {what} to {distribution.department}",
                status="COMPLETE",
                actor_name=distribution.distributed_by.name if distribution.distributed_by else None,
                occurred_at=distribution.distribution_date,
            )
        )

    return _newest_first(activities, limit)


def _letter_archive_activities(db: Session, now: datetime, since: datetime, limit: int) -> List[schemas.Activity]:
    activities: List[schemas.Activity] = []

    letters = (
        db.query(letter_models.Letter)
        .filter(
            letter_models.Letter.has_document.is_(False),
            letter_models.Letter.created_at >= since,
        )
        .order_by(letter_models.Letter.created_at.desc())
        .limit(limit)
        .all()
    )
    for letter in letters:
        direction = "Incoming" if letter.type == letter_models.LetterType.INCOMING else "Outgoing"
        activities.append(
            schemas.Activity(
                id=letter.id,
                type="letter",
                title=f"{direction} letter: {letter.subject}",
                status="NEEDS_DOCUMENT",
                actor_name=letter.created_by.name if letter.created_by else None,
                occurred_at=letter.created_at,
            )
        )

    archives = (
        db.query(archive_models.Archive)
        .filter(archive_models.Archive.updated_at >= since)
        .order_by(archive_models.Archive.updated_at.desc())
        .limit(limit)
        .all()
    )
    for archive in archives:
        activities.append(
            schemas.Activity(
                id=archive.id,
                type="archive",
                title=f"Archive {archive.code}: {archive.title}",
                status=archive.status.value,
                actor_name=archive.archived_by.name if archive.archived_by else None,
                occurred_at=archive.updated_at,
            )
        )

    due = (
        db.query(func.count(archive_models.Archive.id))
        .filter(
            archive_models.Archive.status == archive_models.ArchiveStatus.SCHEDULED_DESTRUCTION,
            archive_models.Archive.destruction_date <= now + timedelta(days=DESTRUCTION_NOTICE_DAYS),
        )
        .scalar()
    )
    activities = _newest_first(activities, limit)
    if due:
        # Pinned first: needs review regardless of age
        activities.insert(
            0,
            schemas.Activity(
                id="destruction",
                type="archive_destruction",
                title=f"{due} archive(s) scheduled for destruction",
                status="NEEDS_REVIEW",
                occurred_at=now,
            ),
        )
    return activities[:limit]


def dashboard_activities(
    db: Session,
    *,
    limit: int = 3,
    now: Optional[datetime] = None,
) -> schemas.DashboardActivities:
    now = now or utcnow()
    since = now - timedelta(days=ACTIVITY_WINDOW_DAYS)
    return schemas.DashboardActivities(
        inventory_activities=_inventory_activities(db, since, limit),
        letter_archive_activities=_letter_archive_activities(db, now, since, limit),
    )
