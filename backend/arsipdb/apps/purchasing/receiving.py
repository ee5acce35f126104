"""
Receptions: goods arriving at the store.

Reconciliation rule (requested vs received quantity):

    received == requested          -> COMPLETE
    0 < received < requested       -> PARTIAL
    received == 0 or over-delivery -> DIFFERENT

COMPLETE and PARTIAL receptions put `received_quantity` into stock with a
single IN movement. DIFFERENT receptions post nothing until someone fixes
them by hand. Every stock effect is written in the same transaction as the
reception row; edits and deletes append compensating movements.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.audit import services as audit_services
from arsipdb.apps.inventory import ledger
from arsipdb.apps.inventory import models as inventory_models
from arsipdb.utils.dates import utcnow

from . import models, schemas

logger = logging.getLogger(__name__)

_AUDIT_FIELDS = (
    "item_id",
    "item_name",
    "requested_quantity",
    "received_quantity",
    "status",
    "purchase_request_id",
)


def classify_reception(requested: int, received: int) -> models.ReceptionStatus:
    if received == requested:
        return models.ReceptionStatus.COMPLETE
    if 0 < received < requested:
        return models.ReceptionStatus.PARTIAL
    return models.ReceptionStatus.DIFFERENT


def resolve_reception_status(
    requested: int,
    received: int,
    supplied: Optional[models.ReceptionStatus] = None,
) -> models.ReceptionStatus:
    """
    Status to store. DIFFERENT can always be set by hand (wrong item or
    variant); COMPLETE and PARTIAL must agree with the quantities.
    """
    computed = classify_reception(requested, received)
    if supplied is None or supplied == models.ReceptionStatus.DIFFERENT:
        return supplied or computed
    if supplied != computed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Status {supplied.value} does not match quantities "
                f"(received {received} of {requested} is {computed.value})"
            ),
        )
    return supplied


def _get_item_or_404(db: Session, item_id: str) -> inventory_models.InventoryItem:
    item = db.get(inventory_models.InventoryItem, item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inventory item not found")
    return item


def get_reception(db: Session, reception_id: str) -> models.Reception:
    reception = db.get(models.Reception, reception_id)
    if reception is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reception not found")
    return reception


def _post(
    db: Session,
    *,
    item_id: str,
    delta: int,
    actor_user_id: str,
    description: str,
) -> None:
    if delta == 0:
        return
    ledger.post_movement(
        db,
        item_id=item_id,
        direction=inventory_models.TransactionType.IN if delta > 0 else inventory_models.TransactionType.OUT,
        quantity=abs(delta),
        actor_user_id=actor_user_id,
        description=description,
    )


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


def create_reception(
    db: Session,
    *,
    payload: schemas.ReceptionCreate,
    actor: account_models.User,
) -> models.Reception:
    with ledger.ledger_transaction(db):
        _get_item_or_404(db, payload.item_id)

        purchase_request = None
        if payload.purchase_request_id:
            purchase_request = (
                db.query(models.PurchaseRequest)
                .filter(models.PurchaseRequest.id == payload.purchase_request_id)
                .with_for_update()
                .one_or_none()
            )
            if purchase_request is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Purchase request not found")
            if purchase_request.status != models.PurchaseRequestStatus.APPROVED:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Only approved purchase requests can be received",
                )

        reception = models.Reception(
            purchase_request_id=payload.purchase_request_id,
            item_id=payload.item_id,
            item_name=payload.item_name.strip(),
            requested_quantity=payload.requested_quantity,
            received_quantity=payload.received_quantity,
            unit=payload.unit.strip(),
            receipt_date=payload.receipt_date or utcnow(),
            status=resolve_reception_status(
                payload.requested_quantity,
                payload.received_quantity,
                payload.status,
            ),
            notes=payload.notes,
            received_by_id=actor.id,
        )
        db.add(reception)
        db.flush()

        reference = f" for {purchase_request.request_number}" if purchase_request else ""
        _post(
            db,
            item_id=reception.item_id,
            delta=reception.posted_quantity,
            actor_user_id=actor.id,
            description=f"Reception of {reception.item_name}{reference}",
        )

        if purchase_request is not None:
            purchase_request.status = models.PurchaseRequestStatus.RECEIVED
            db.add(purchase_request)
            db.flush()

        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="reception",
            entity_id=reception.id,
            action="create",
            after=audit_services.snapshot(reception, _AUDIT_FIELDS),
        )
    return reception


def update_reception(
    db: Session,
    *,
    reception_id: str,
    payload: schemas.ReceptionUpdate,
    actor: account_models.User,
) -> models.Reception:
    """
    Apply the edit and move stock by the difference between what the
    reception posted before and what it posts now.
    """
    with ledger.ledger_transaction(db):
        reception = get_reception(db, reception_id)
        before = audit_services.snapshot(reception, _AUDIT_FIELDS)
        old_item_id = reception.item_id
        old_posted = reception.posted_quantity

        data = payload.model_dump(exclude_unset=True)
        if data.get("item_id") and data["item_id"] != old_item_id:
            _get_item_or_404(db, data["item_id"])

        quantities_changed = False
        for field in ("item_id", "item_name", "requested_quantity", "received_quantity", "unit", "receipt_date", "notes"):
            value = data.get(field)
            if field not in data or (value is None and field != "notes"):
                continue
            if field in ("requested_quantity", "received_quantity") and value != getattr(reception, field):
                quantities_changed = True
            setattr(reception, field, value.strip() if isinstance(value, str) and field != "notes" else value)

        supplied = data.get("status")
        if supplied is not None:
            reception.status = resolve_reception_status(
                reception.requested_quantity,
                reception.received_quantity,
                supplied,
            )
        elif quantities_changed:
            reception.status = classify_reception(reception.requested_quantity, reception.received_quantity)

        db.add(reception)
        db.flush()

        new_posted = reception.posted_quantity
        if reception.item_id == old_item_id:
            delta = new_posted - old_posted
            _post(
                db,
                item_id=reception.item_id,
                delta=delta,
                actor_user_id=actor.id,
                description=f"Reception update - {'increased' if delta > 0 else 'decreased'} stock",
            )
        else:
            legs = [
                (old_item_id, -old_posted, "Reception moved to another item - stock reverted"),
                (reception.item_id, new_posted, f"Reception of {reception.item_name} (moved from another item)"),
            ]
            # item rows are locked in id order, as distributions do
            for item_id, delta, description in sorted(legs, key=lambda leg: leg[0]):
                _post(db, item_id=item_id, delta=delta, actor_user_id=actor.id, description=description)

        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="reception",
            entity_id=reception.id,
            action="update",
            before=before,
            after=audit_services.snapshot(reception, _AUDIT_FIELDS),
        )
    return reception


def delete_reception(
    db: Session,
    *,
    reception_id: str,
    actor: account_models.User,
) -> None:
    """
    Revert the stock the reception posted and reopen its purchase request
    (back to APPROVED) when no other reception remains for it.
    """
    with ledger.ledger_transaction(db):
        reception = get_reception(db, reception_id)
        before = audit_services.snapshot(reception, _AUDIT_FIELDS)

        _post(
            db,
            item_id=reception.item_id,
            delta=-reception.posted_quantity,
            actor_user_id=actor.id,
            description="Reception deleted - stock reverted",
        )

        if reception.purchase_request_id:
            remaining = (
                db.query(func.count(models.Reception.id))
                .filter(
                    models.Reception.purchase_request_id == reception.purchase_request_id,
                    models.Reception.id != reception.id,
                )
                .scalar()
            )
            purchase_request = db.get(models.PurchaseRequest, reception.purchase_request_id)
            if (
                purchase_request is not None
                and not remaining
                and purchase_request.status == models.PurchaseRequestStatus.RECEIVED
            ):
                purchase_request.status = models.PurchaseRequestStatus.APPROVED
                db.add(purchase_request)

        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="reception",
            entity_id=reception.id,
            action="delete",
            before=before,
            critical=True,
        )
        db.delete(reception)
        db.flush()


def list_receptions(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    reception_status: Optional[models.ReceptionStatus] = None,
    search: Optional[str] = None,
) -> Tuple[List[models.Reception], int]:
    query = db.query(models.Reception)
    if reception_status:
        query = query.filter(models.Reception.status == reception_status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.Reception.item_name.ilike(like),
                models.Reception.received_by.has(account_models.User.name.ilike(like)),
            )
        )
    total = query.order_by(None).count()
    rows = (
        query.order_by(models.Reception.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def reception_stats(db: Session) -> schemas.ReceptionStats:
    rows = (
        db.query(models.Reception.status, func.count(models.Reception.id))
        .group_by(models.Reception.status)
        .all()
    )
    counts = Counter({models.ReceptionStatus(row_status): int(count) for row_status, count in rows})
    total = sum(counts.values())
    complete = counts[models.ReceptionStatus.COMPLETE]

    since = utcnow() - timedelta(days=7)
    trend_rows = (
        db.query(models.Reception.status, func.count(models.Reception.id))
        .filter(models.Reception.created_at >= since)
        .group_by(models.Reception.status)
        .all()
    )
    trends = Counter({models.ReceptionStatus(row_status): int(count) for row_status, count in trend_rows})

    recent = db.query(models.Reception).order_by(models.Reception.created_at.desc()).limit(5).all()

    return schemas.ReceptionStats(
        total_receptions=total,
        complete_receptions=complete,
        partial_receptions=counts[models.ReceptionStatus.PARTIAL],
        different_receptions=counts[models.ReceptionStatus.DIFFERENT],
        completion_rate=round(complete / total * 100) if total else 0,
        trends=schemas.ReceptionTrend(
            complete=trends[models.ReceptionStatus.COMPLETE],
            partial=trends[models.ReceptionStatus.PARTIAL],
            different=trends[models.ReceptionStatus.DIFFERENT],
        ),
        recent_receptions=[schemas.ReceptionRead.model_validate(r) for r in recent],
    )
