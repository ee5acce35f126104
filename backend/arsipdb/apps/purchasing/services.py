from __future__ import annotations

import csv
import io
import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from arsipdb.database import scoped_transaction
from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.audit import services as audit_services
from arsipdb.apps.inventory import models as inventory_models
from arsipdb.utils.dates import add_months, as_utc, last_days, last_months, month_key, month_start, utcnow

from . import models, schemas

logger = logging.getLogger(__name__)

REQUEST_NUMBER_ATTEMPTS = 5

_AUDIT_FIELDS = ("request_number", "status", "item_name", "quantity", "unit", "reason", "notes", "reviewed_by_id")


# ---------------------------------------------------------------------------
# HELPERS
# ---------------------------------------------------------------------------


def pages_for(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def _is_staff(user: account_models.User) -> bool:
    return user.role == account_models.UserRole.STAFF


def _scope_to_viewer(query: Query, viewer: account_models.User) -> Query:
    """STAFF see only their own requests."""
    if _is_staff(viewer):
        query = query.filter(models.PurchaseRequest.requested_by_id == viewer.id)
    return query


def _ensure_inventory_items_exist(db: Session, item_ids: Iterable[Optional[str]]) -> None:
    wanted = [item_id for item_id in item_ids if item_id]
    if not wanted:
        return
    found = {
        row.id
        for row in db.query(inventory_models.InventoryItem.id)
        .filter(inventory_models.InventoryItem.id.in_(wanted))
        .all()
    }
    missing = [item_id for item_id in wanted if item_id not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "Some inventory items not found", "missing": missing},
        )


def _request_number_prefix(now: datetime) -> str:
    return f"PR-{now.year:04d}-{now.month:02d}-"


def next_request_number(db: Session, *, now: Optional[datetime] = None) -> str:
    """PR-YYYY-MM-NNN: one sequence per calendar month."""
    prefix = _request_number_prefix(now or utcnow())
    # compared as numbers: "-1000" sorts below "-999" as text
    highest = 0
    for (number,) in (
        db.query(models.PurchaseRequest.request_number)
        .filter(models.PurchaseRequest.request_number.like(f"{prefix}%"))
        .all()
    ):
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:03d}"


def _is_request_number_collision(exc: IntegrityError) -> bool:
    return "request_number" in str(exc.orig).lower()


def _build_lines(items: Optional[Sequence[schemas.PurchaseRequestItemIn]]) -> List[models.PurchaseRequestItem]:
    return [
        models.PurchaseRequestItem(
            item_name=line.item_name.strip(),
            quantity=line.quantity,
            unit=line.unit.strip(),
            item_id=line.item_id,
        )
        for line in (items or [])
    ]


def get_purchase_request(db: Session, request_id: str) -> models.PurchaseRequest:
    pr = db.get(models.PurchaseRequest, request_id)
    if pr is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Purchase request not found")
    return pr


def get_visible_purchase_request(
    db: Session,
    *,
    request_id: str,
    viewer: account_models.User,
) -> models.PurchaseRequest:
    pr = get_purchase_request(db, request_id)
    if _is_staff(viewer) and pr.requested_by_id != viewer.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return pr


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


def create_purchase_request(
    db: Session,
    *,
    payload: schemas.PurchaseRequestCreate,
    requester: account_models.User,
) -> models.PurchaseRequest:
    """
    Create and commit a request. Two concurrent creates can pick the same
    number; the unique index rejects one and it retries with a fresh number.
    """
    item_ids = [payload.item_id] + [line.item_id for line in payload.items or []]
    _ensure_inventory_items_exist(db, item_ids)

    for attempt in range(1, REQUEST_NUMBER_ATTEMPTS + 1):
        try:
            with scoped_transaction(db):
                pr = models.PurchaseRequest(
                    request_number=next_request_number(db),
                    item_name=(payload.item_name or "").strip(),
                    quantity=payload.quantity or 0,
                    unit=(payload.unit or "").strip(),
                    item_id=payload.item_id,
                    reason=payload.reason.strip(),
                    notes=payload.notes,
                    status=models.PurchaseRequestStatus.PENDING,
                    requested_by_id=requester.id,
                    items=_build_lines(payload.items),
                )
                db.add(pr)
                db.flush()
                audit_services.log_event(
                    db,
                    actor_user_id=requester.id,
                    entity_type="purchase_request",
                    entity_id=pr.id,
                    action="create",
                    after=audit_services.snapshot(pr, _AUDIT_FIELDS),
                )
            return pr
        except IntegrityError as exc:
            if not _is_request_number_collision(exc):
                raise
            logger.warning(
                "Request number collision, retrying (attempt %s of %s)",
                attempt,
                REQUEST_NUMBER_ATTEMPTS,
            )

    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Unable to generate unique request number after multiple attempts",
    )


def list_purchase_requests(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    request_status: Optional[models.PurchaseRequestStatus] = None,
    search: Optional[str] = None,
    requested_by_id: Optional[str] = None,
) -> Tuple[List[models.PurchaseRequest], int]:
    query = db.query(models.PurchaseRequest)
    if requested_by_id:
        query = query.filter(models.PurchaseRequest.requested_by_id == requested_by_id)
    if request_status:
        query = query.filter(models.PurchaseRequest.status == request_status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.PurchaseRequest.item_name.ilike(like),
                models.PurchaseRequest.reason.ilike(like),
                models.PurchaseRequest.request_number.ilike(like),
                models.PurchaseRequest.requested_by.has(account_models.User.name.ilike(like)),
                models.PurchaseRequest.items.any(models.PurchaseRequestItem.item_name.ilike(like)),
            )
        )

    total = query.order_by(None).count()
    rows = (
        query.order_by(models.PurchaseRequest.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def list_available_requests(db: Session) -> List[models.PurchaseRequest]:
    """Approved requests still waiting for goods, newest review first."""
    return (
        db.query(models.PurchaseRequest)
        .filter(models.PurchaseRequest.status == models.PurchaseRequestStatus.APPROVED)
        .order_by(models.PurchaseRequest.review_date.desc(), models.PurchaseRequest.created_at.desc())
        .all()
    )


def update_purchase_request(
    db: Session,
    *,
    request_id: str,
    payload: schemas.PurchaseRequestUpdate,
    actor: account_models.User,
) -> models.PurchaseRequest:
    pr = get_purchase_request(db, request_id)
    if _is_staff(actor) and (
        pr.requested_by_id != actor.id or pr.status != models.PurchaseRequestStatus.PENDING
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only your own pending requests can be edited",
        )
    if pr.status == models.PurchaseRequestStatus.RECEIVED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Received requests cannot be edited",
        )

    data = payload.model_dump(exclude_unset=True)
    item_ids = [data.get("item_id")] + [line.item_id for line in payload.items or []]
    _ensure_inventory_items_exist(db, item_ids)

    before = audit_services.snapshot(pr, _AUDIT_FIELDS)
    for field in ("item_name", "quantity", "unit", "item_id", "reason", "notes"):
        if field in data:
            value = data[field]
            setattr(pr, field, value.strip() if isinstance(value, str) and field != "notes" else value)
    if payload.items is not None:
        pr.items = _build_lines(payload.items)

    if not (pr.item_name and pr.quantity and pr.unit) and not pr.items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A request needs single item fields or at least one item line",
        )

    db.add(pr)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="purchase_request",
        entity_id=pr.id,
        action="update",
        before=before,
        after=audit_services.snapshot(pr, _AUDIT_FIELDS),
    )
    return pr


def _apply_review(
    pr: models.PurchaseRequest,
    *,
    action: str,
    notes: Optional[str],
    reviewer: account_models.User,
    reviewed_at: datetime,
) -> None:
    pr.status = (
        models.PurchaseRequestStatus.APPROVED
        if action == "APPROVE"
        else models.PurchaseRequestStatus.REJECTED
    )
    pr.reviewed_by_id = reviewer.id
    pr.review_date = reviewed_at
    if notes is not None:
        pr.notes = notes


def review_purchase_request(
    db: Session,
    *,
    request_id: str,
    payload: schemas.PurchaseRequestReview,
    reviewer: account_models.User,
) -> models.PurchaseRequest:
    pr = get_purchase_request(db, request_id)
    if pr.status != models.PurchaseRequestStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending requests can be reviewed",
        )

    before = audit_services.snapshot(pr, _AUDIT_FIELDS)
    _apply_review(pr, action=payload.action, notes=payload.notes, reviewer=reviewer, reviewed_at=utcnow())
    db.add(pr)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=reviewer.id,
        entity_type="purchase_request",
        entity_id=pr.id,
        action=payload.action.lower(),
        before=before,
        after=audit_services.snapshot(pr, _AUDIT_FIELDS),
        critical=True,
    )
    return pr


def bulk_review_purchase_requests(
    db: Session,
    *,
    payload: schemas.PurchaseRequestBulkReview,
    reviewer: account_models.User,
) -> List[models.PurchaseRequest]:
    """All-or-nothing: every id must exist and still be PENDING."""
    request_ids = list(dict.fromkeys(payload.request_ids))
    rows = (
        db.query(models.PurchaseRequest)
        .filter(models.PurchaseRequest.id.in_(request_ids))
        .all()
    )
    found = {row.id: row for row in rows}
    missing = [request_id for request_id in request_ids if request_id not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Some requests were not found", "missing": missing},
        )
    not_pending = [
        found[request_id].request_number
        for request_id in request_ids
        if found[request_id].status != models.PurchaseRequestStatus.PENDING
    ]
    if not_pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Some requests are no longer pending", "requests": not_pending},
        )

    reviewed_at = utcnow()
    reviewed = []
    for request_id in request_ids:
        pr = found[request_id]
        before = audit_services.snapshot(pr, _AUDIT_FIELDS)
        _apply_review(pr, action=payload.action, notes=payload.notes, reviewer=reviewer, reviewed_at=reviewed_at)
        db.add(pr)
        db.flush()
        audit_services.log_event(
            db,
            actor_user_id=reviewer.id,
            entity_type="purchase_request",
            entity_id=pr.id,
            action=payload.action.lower(),
            before=before,
            after=audit_services.snapshot(pr, _AUDIT_FIELDS),
            metadata={"bulk": True, "count": len(request_ids)},
            critical=True,
        )
        reviewed.append(pr)
    return reviewed


def delete_purchase_request(
    db: Session,
    *,
    request_id: str,
    actor: account_models.User,
) -> None:
    pr = get_purchase_request(db, request_id)
    if actor.role != account_models.UserRole.ADMINISTRATOR and pr.requested_by_id != actor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized to delete this request",
        )
    if pr.status == models.PurchaseRequestStatus.RECEIVED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete received requests",
        )
    has_receptions = (
        db.query(models.Reception.id)
        .filter(models.Reception.purchase_request_id == pr.id)
        .first()
        is not None
    )
    if has_receptions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete request that has related receptions",
        )

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="purchase_request",
        entity_id=pr.id,
        action="delete",
        before=audit_services.snapshot(pr, _AUDIT_FIELDS),
        critical=True,
    )
    db.delete(pr)
    db.flush()


# ---------------------------------------------------------------------------
# STATISTICS / REPORTS / EXPORT
# ---------------------------------------------------------------------------


def _status_counts(query: Query) -> Dict[models.PurchaseRequestStatus, int]:
    rows = (
        query.with_entities(models.PurchaseRequest.status, func.count(models.PurchaseRequest.id))
        .group_by(models.PurchaseRequest.status)
        .all()
    )
    counts = {value: 0 for value in models.PurchaseRequestStatus}
    for request_status, count in rows:
        counts[models.PurchaseRequestStatus(request_status)] = int(count)
    return counts


def _top_items(requests: Iterable[models.PurchaseRequest], limit: int = 10) -> List[schemas.TopRequestedItem]:
    """Most requested item names, counting both the single item and lines."""
    counts: Counter = Counter()
    quantities: Dict[str, int] = defaultdict(int)
    for pr in requests:
        lines = [(line.item_name, line.quantity) for line in pr.items]
        if pr.item_name:
            lines.append((pr.item_name, pr.quantity))
        for name, quantity in lines:
            counts[name] += 1
            quantities[name] += int(quantity or 0)
    return [
        schemas.TopRequestedItem(item_name=name, request_count=count, total_quantity=quantities[name])
        for name, count in counts.most_common(limit)
    ]


def purchase_request_stats(
    db: Session,
    *,
    viewer: account_models.User,
) -> schemas.PurchaseRequestStats:
    base = _scope_to_viewer(db.query(models.PurchaseRequest), viewer)
    counts = _status_counts(base)

    approval_rate = None
    if viewer.role == account_models.UserRole.ADMINISTRATOR:
        reviewed = counts[models.PurchaseRequestStatus.APPROVED] + counts[models.PurchaseRequestStatus.REJECTED]
        approval_rate = (
            round(counts[models.PurchaseRequestStatus.APPROVED] / reviewed * 100, 2) if reviewed else 0.0
        )

    now = utcnow()
    months = last_months(12, now)
    by_month = {key: Counter() for key in months}
    window = base.filter(models.PurchaseRequest.request_date >= add_months(month_start(now), -11)).all()
    for pr in window:
        key = month_key(as_utc(pr.request_date))
        if key in by_month:
            by_month[key]["count"] += 1
            by_month[key][pr.status.value] += 1

    recent = base.order_by(models.PurchaseRequest.created_at.desc()).limit(10).all()

    return schemas.PurchaseRequestStats(
        summary=schemas.PurchaseRequestSummary(
            total=sum(counts.values()),
            pending=counts[models.PurchaseRequestStatus.PENDING],
            approved=counts[models.PurchaseRequestStatus.APPROVED],
            rejected=counts[models.PurchaseRequestStatus.REJECTED],
            received=counts[models.PurchaseRequestStatus.RECEIVED],
            approval_rate=approval_rate,
        ),
        requests_by_month=[
            schemas.MonthlyRequestCount(
                month=key,
                count=by_month[key]["count"],
                pending=by_month[key]["PENDING"],
                approved=by_month[key]["APPROVED"],
                rejected=by_month[key]["REJECTED"],
            )
            for key in reversed(months)
        ],
        top_requested_items=_top_items(base.all()),
        recent_activity=[schemas.PurchaseRequestRead.model_validate(pr) for pr in recent],
    )


def purchase_request_report(
    db: Session,
    *,
    viewer: account_models.User,
    report_type: str = "summary",
    period_days: int = 30,
) -> schemas.PurchaseRequestReport:
    now = utcnow()
    start = now - timedelta(days=period_days)
    base = _scope_to_viewer(db.query(models.PurchaseRequest), viewer)
    in_period = base.filter(models.PurchaseRequest.request_date >= start)
    period_label = f"{period_days} days"

    if report_type == "summary":
        period_counts = _status_counts(in_period)
        period_total = sum(period_counts.values())
        pending_total = base.filter(
            models.PurchaseRequest.status == models.PurchaseRequestStatus.PENDING
        ).count()
        approved = period_counts[models.PurchaseRequestStatus.APPROVED]
        decided = period_total - period_counts[models.PurchaseRequestStatus.PENDING]

        processing_days = [
            (as_utc(pr.review_date) - as_utc(pr.request_date)).total_seconds() / 86400
            for pr in in_period.filter(models.PurchaseRequest.review_date.isnot(None)).all()
        ]
        avg_days = sum(processing_days) / len(processing_days) if processing_days else 0.0

        return schemas.PurchaseRequestReport(
            report_type="summary",
            period=period_label,
            data={
                "total_requests": base.count(),
                "period_requests": period_total,
                "approved_requests": approved,
                "rejected_requests": period_counts[models.PurchaseRequestStatus.REJECTED],
                "pending_requests": pending_total,
                "approval_rate": round(approved / decided * 100, 2) if decided > 0 else 0.0,
                "avg_processing_days": round(avg_days, 2),
            },
        )

    if report_type == "detailed":
        requests = in_period.order_by(models.PurchaseRequest.request_date.desc()).all()
        grouped: Dict[str, List[dict]] = defaultdict(list)
        serialised = []
        for pr in requests:
            row = schemas.PurchaseRequestRead.model_validate(pr).model_dump(mode="json")
            serialised.append(row)
            grouped[pr.status.value].append(row)
        return schemas.PurchaseRequestReport(
            report_type="detailed",
            period=period_label,
            data={
                "requests": serialised,
                "grouped_by_status": dict(grouped),
                "summary": {
                    "total": len(requests),
                    "pending": len(grouped.get("PENDING", [])),
                    "approved": len(grouped.get("APPROVED", [])),
                    "rejected": len(grouped.get("REJECTED", [])),
                    "received": len(grouped.get("RECEIVED", [])),
                },
            },
        )

    if report_type == "trends":
        requests = in_period.all()
        days = {key: Counter() for key in last_days(period_days + 1, now)}
        for pr in requests:
            key = as_utc(pr.request_date).date().isoformat()
            if key in days:
                days[key]["total"] += 1
                days[key][pr.status.value] += 1
        return schemas.PurchaseRequestReport(
            report_type="trends",
            period=period_label,
            data={
                "daily_trends": [
                    schemas.DailyRequestCount(
                        date=key,
                        total=counts["total"],
                        pending=counts["PENDING"],
                        approved=counts["APPROVED"],
                        rejected=counts["REJECTED"],
                    ).model_dump()
                    for key, counts in days.items()
                    if counts["total"]
                ],
                "top_items": [item.model_dump() for item in _top_items(requests)],
            },
        )

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid report type")


def export_purchase_requests(
    db: Session,
    *,
    viewer: account_models.User,
    request_status: Optional[models.PurchaseRequestStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> List[models.PurchaseRequest]:
    query = _scope_to_viewer(db.query(models.PurchaseRequest), viewer)
    if request_status:
        query = query.filter(models.PurchaseRequest.status == request_status)
    if start_date:
        query = query.filter(models.PurchaseRequest.request_date >= start_date)
    if end_date:
        query = query.filter(models.PurchaseRequest.request_date <= end_date)
    return query.order_by(models.PurchaseRequest.request_date.desc()).all()


CSV_HEADERS = [
    "ID",
    "Request Number",
    "Item Name",
    "Quantity",
    "Unit",
    "Reason",
    "Status",
    "Requested By",
    "Request Date",
    "Reviewed By",
    "Review Date",
    "Notes",
]


def _csv_item_summary(pr: models.PurchaseRequest) -> Tuple[str, str, str]:
    if pr.items:
        names = "; ".join(f"{line.item_name} x{line.quantity} {line.unit}" for line in pr.items)
        return names, str(sum(line.quantity for line in pr.items)), ""
    return pr.item_name, str(pr.quantity), pr.unit


def render_csv(requests: Sequence[models.PurchaseRequest]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
    writer.writerow(CSV_HEADERS)
    for pr in requests:
        item_name, quantity, unit = _csv_item_summary(pr)
        writer.writerow(
            [
                pr.id,
                pr.request_number,
                item_name,
                quantity,
                unit,
                pr.reason,
                pr.status.value,
                pr.requested_by.name if pr.requested_by else "",
                as_utc(pr.request_date).date().isoformat(),
                pr.reviewed_by.name if pr.reviewed_by else "",
                as_utc(pr.review_date).date().isoformat() if pr.review_date else "",
                pr.notes or "",
            ]
        )
    return buffer.getvalue()
