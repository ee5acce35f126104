"""
Distributions: supplies handed out to staff, one note (DST-NNN) per
hand-out.

Every line linked to an inventory item draws its quantity from stock with
one OUT movement, in the same transaction as the note and its lines. Edits
and deletes never rewrite history: they put the old lines back with
compensating IN movements and post the new ones.
"""

from __future__ import annotations

import logging
import re
from collections import Counter, defaultdict
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.audit import services as audit_services
from arsipdb.apps.inventory import ledger
from arsipdb.apps.inventory import models as inventory_models
from arsipdb.utils.dates import add_months, as_utc, last_months, month_key, month_start, rolling_period_start, utcnow

from . import models, schemas

logger = logging.getLogger(__name__)

NOTE_NUMBER_ATTEMPTS = 5
NOTE_PREFIX = "DST-"

_NOTE_PATTERN = re.compile(r"^DST-(\d+)$")
_AUDIT_FIELDS = ("note_number", "staff_name", "department", "distribution_date", "purpose")


def _snapshot(distribution: models.Distribution) -> dict:
    data = audit_services.snapshot(distribution, _AUDIT_FIELDS)
    data["items"] = [
        {"item_name": line.item_name, "quantity": line.quantity, "unit": line.unit, "item_id": line.item_id}
        for line in distribution.items
    ]
    return data


def format_note_number(sequence: int) -> str:
    return f"{NOTE_PREFIX}{sequence:03d}"


def next_note_number(db: Session) -> str:
    """
    Next DST number after the numerically highest one. Hand-edited numbers
    that do not follow the pattern are ignored.
    """
    highest = 0
    for (note_number,) in db.query(models.Distribution.note_number).all():
        match = _NOTE_PATTERN.match(note_number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return format_note_number(highest + 1)


def _is_note_number_collision(exc: IntegrityError) -> bool:
    return "note_number" in str(exc.orig).lower()


def get_distribution(db: Session, distribution_id: str) -> models.Distribution:
    distribution = db.get(models.Distribution, distribution_id)
    if distribution is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Distribution not found")
    return distribution


def _build_lines(items: Sequence[schemas.DistributionItemIn]) -> List[models.DistributionItem]:
    return [
        models.DistributionItem(
            item_name=line.item_name.strip(),
            quantity=line.quantity,
            unit=line.unit.strip(),
            item_id=line.item_id,
        )
        for line in items
    ]


def _in_lock_order(lines: Sequence[models.DistributionItem]) -> List[models.DistributionItem]:
    """Linked lines sorted by item id, so concurrent notes lock item rows in the same order."""
    return sorted((line for line in lines if line.item_id), key=lambda line: line.item_id)


def _draw_lines(
    db: Session,
    distribution: models.Distribution,
    lines: Sequence[models.DistributionItem],
    *,
    actor_user_id: str,
) -> None:
    for line in _in_lock_order(lines):
        ledger.post_movement(
            db,
            item_id=line.item_id,
            direction=inventory_models.TransactionType.OUT,
            quantity=line.quantity,
            actor_user_id=actor_user_id,
            description=f"Distribution - {distribution.note_number}: {line.item_name} to {distribution.staff_name}",
        )


def _restore_lines(
    db: Session,
    distribution: models.Distribution,
    lines: Sequence[models.DistributionItem],
    *,
    actor_user_id: str,
    reason: str,
) -> None:
    for line in _in_lock_order(lines):
        ledger.post_movement(
            db,
            item_id=line.item_id,
            direction=inventory_models.TransactionType.IN,
            quantity=line.quantity,
            actor_user_id=actor_user_id,
            description=f"Stock restored from {reason} distribution - {distribution.note_number}: {line.item_name}",
        )


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


def create_distribution(
    db: Session,
    *,
    payload: schemas.DistributionCreate,
    actor: account_models.User,
) -> models.Distribution:
    """
    Write the note, its lines and one OUT movement per linked line as a
    single unit. A line without enough stock rejects the whole note.
    """
    for attempt in range(1, NOTE_NUMBER_ATTEMPTS + 1):
        try:
            with ledger.ledger_transaction(db):
                distribution = models.Distribution(
                    note_number=next_note_number(db),
                    distributed_by_id=actor.id,
                    staff_name=payload.staff_name.strip(),
                    department=payload.department.strip(),
                    distribution_date=payload.distribution_date or utcnow(),
                    purpose=payload.purpose.strip(),
                    items=_build_lines(payload.items),
                )
                db.add(distribution)
                db.flush()

                _draw_lines(db, distribution, distribution.items, actor_user_id=actor.id)

                audit_services.log_event(
                    db,
                    actor_user_id=actor.id,
                    entity_type="distribution",
                    entity_id=distribution.id,
                    action="create",
                    after=_snapshot(distribution),
                )
            return distribution
        except IntegrityError as exc:
            if not _is_note_number_collision(exc):
                raise
            logger.warning(
                "Note number collision, retrying (attempt %s of %s)",
                attempt,
                NOTE_NUMBER_ATTEMPTS,
            )

    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Unable to generate unique note number after multiple attempts",
    )


def update_distribution(
    db: Session,
    *,
    distribution_id: str,
    payload: schemas.DistributionUpdate,
    actor: account_models.User,
) -> models.Distribution:
    with ledger.ledger_transaction(db):
        distribution = get_distribution(db, distribution_id)
        before = _snapshot(distribution)
        data = payload.model_dump(exclude_unset=True)

        note_number = data.get("note_number")
        if note_number and note_number.strip() != distribution.note_number:
            note_number = note_number.strip()
            taken = (
                db.query(models.Distribution.id)
                .filter(models.Distribution.note_number == note_number)
                .first()
            )
            if taken:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Note number already exists")
            distribution.note_number = note_number

        for field in ("staff_name", "department", "distribution_date", "purpose"):
            value = data.get(field)
            if value is None:
                continue
            setattr(distribution, field, value.strip() if isinstance(value, str) else value)

        if payload.items is not None:
            _restore_lines(db, distribution, list(distribution.items), actor_user_id=actor.id, reason="updated")
            distribution.items = _build_lines(payload.items)
            db.flush()
            _draw_lines(db, distribution, distribution.items, actor_user_id=actor.id)

        db.add(distribution)
        db.flush()
        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="distribution",
            entity_id=distribution.id,
            action="update",
            before=before,
            after=_snapshot(distribution),
        )
    return distribution


def delete_distribution(
    db: Session,
    *,
    distribution_id: str,
    actor: account_models.User,
) -> None:
    with ledger.ledger_transaction(db):
        distribution = get_distribution(db, distribution_id)
        before = _snapshot(distribution)
        _restore_lines(db, distribution, list(distribution.items), actor_user_id=actor.id, reason="deleted")
        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="distribution",
            entity_id=distribution.id,
            action="delete",
            before=before,
            critical=True,
        )
        db.delete(distribution)
        db.flush()


def list_distributions(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    department: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Tuple[List[models.Distribution], int]:
    query = db.query(models.Distribution)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.Distribution.note_number.ilike(like),
                models.Distribution.staff_name.ilike(like),
                models.Distribution.department.ilike(like),
                models.Distribution.purpose.ilike(like),
            )
        )
    if department:
        query = query.filter(models.Distribution.department.ilike(f"%{department.strip()}%"))
    if start_date:
        query = query.filter(models.Distribution.distribution_date >= start_date)
    if end_date:
        query = query.filter(models.Distribution.distribution_date <= end_date)

    total = query.order_by(None).count()
    rows = (
        query.order_by(models.Distribution.distribution_date.desc(), models.Distribution.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


# ---------------------------------------------------------------------------
# STATS
# ---------------------------------------------------------------------------


def distribution_stats(
    db: Session,
    *,
    period: str = "month",
    now: Optional[datetime] = None,
) -> schemas.DistributionStats:
    """
    Counts for the window `period` back from now (week / month / quarter /
    year), plus a 12-month trend that ignores the window.
    """
    now = now or utcnow()
    since = rolling_period_start(period, now)

    total = db.query(func.count(models.Distribution.id)).scalar() or 0
    recent = (
        db.query(models.Distribution)
        .filter(models.Distribution.distribution_date >= since)
        .all()
    )

    departments = Counter(d.department for d in recent)
    item_quantity: Counter = Counter()
    item_notes: Counter = Counter()
    for distribution in recent:
        for line in distribution.items:
            item_quantity[line.item_name] += line.quantity
            item_notes[line.item_name] += 1

    trend_since = add_months(month_start(now), -11)
    monthly_count: Counter = Counter()
    monthly_quantity: defaultdict = defaultdict(int)
    for distribution in (
        db.query(models.Distribution)
        .filter(models.Distribution.distribution_date >= trend_since)
        .all()
    ):
        key = month_key(as_utc(distribution.distribution_date))
        monthly_count[key] += 1
        monthly_quantity[key] += distribution.total_quantity

    return schemas.DistributionStats(
        period=period,
        total_distributions=total,
        recent_distributions=len(recent),
        total_quantity_distributed=sum(item_quantity.values()),
        department_stats=[
            schemas.DepartmentCount(department=name, count=count)
            for name, count in departments.most_common(10)
        ],
        top_distributed_items=[
            schemas.DistributedItemCount(
                item_name=name,
                total_quantity=quantity,
                distribution_count=item_notes[name],
            )
            for name, quantity in item_quantity.most_common(10)
        ],
        monthly_distributions=[
            schemas.MonthlyDistributionCount(
                month=key,
                count=monthly_count[key],
                total_quantity=monthly_quantity[key],
            )
            for key in last_months(12, now)
        ],
    )
