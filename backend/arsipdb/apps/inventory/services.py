from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from arsipdb.apps.audit import services as audit_services
from arsipdb.apps.distribution import models as distribution_models
from arsipdb.apps.purchasing import models as purchasing_models

from . import ledger, models, schemas

logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS = 5

_AUDIT_FIELDS = ("name", "category", "unit", "stock", "min_stock")


def get_item(db: Session, item_id: str) -> models.InventoryItem:
    item = db.get(models.InventoryItem, item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


def recent_transactions(
    db: Session,
    item_id: str,
    *,
    limit: Optional[int] = RECENT_TRANSACTIONS,
) -> List[models.StockTransaction]:
    query = (
        db.query(models.StockTransaction)
        .filter(models.StockTransaction.item_id == item_id)
        .order_by(models.StockTransaction.created_at.desc(), models.StockTransaction.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def build_item_read(
    item: models.InventoryItem,
    transactions: Iterable[models.StockTransaction] = (),
) -> schemas.InventoryItemRead:
    return schemas.InventoryItemRead(
        id=item.id,
        name=item.name,
        category=item.category,
        unit=item.unit,
        stock=item.stock,
        min_stock=item.min_stock,
        status=ledger.classify_status(item.stock, item.min_stock),
        created_at=item.created_at,
        updated_at=item.updated_at,
        recent_transactions=[schemas.StockTransactionRead.model_validate(t) for t in transactions],
    )


def list_items(
    db: Session,
    *,
    search: Optional[str] = None,
    category: Optional[str] = None,
    stock_status: Optional[models.StockStatus] = None,
) -> List[schemas.InventoryItemRead]:
    query = db.query(models.InventoryItem)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.InventoryItem.name.ilike(like),
                models.InventoryItem.category.ilike(like),
            )
        )
    if category:
        query = query.filter(models.InventoryItem.category == category)
    if stock_status == models.StockStatus.CRITICAL:
        query = query.filter(models.InventoryItem.stock <= 0)
    elif stock_status == models.StockStatus.LOW:
        query = query.filter(
            models.InventoryItem.stock > 0,
            models.InventoryItem.stock <= models.InventoryItem.min_stock,
        )
    elif stock_status == models.StockStatus.NORMAL:
        query = query.filter(models.InventoryItem.stock > models.InventoryItem.min_stock)

    items = query.order_by(models.InventoryItem.created_at.desc()).all()
    return [build_item_read(item, recent_transactions(db, item.id)) for item in items]


def create_item(
    db: Session,
    *,
    payload: schemas.InventoryItemCreate,
    actor_user_id: str,
) -> models.InventoryItem:
    """
    Register an item. A non-zero opening stock is posted as the first IN
    entry, in the same transaction, so the balance is backed by the ledger
    from the start.
    """
    with ledger.ledger_transaction(db):
        item = models.InventoryItem(
            name=payload.name.strip(),
            category=payload.category.strip(),
            unit=payload.unit.strip(),
            stock=0,
            min_stock=payload.min_stock,
        )
        db.add(item)
        db.flush()

        if payload.stock > 0:
            ledger.post_movement(
                db,
                item_id=item.id,
                direction=models.TransactionType.IN,
                quantity=payload.stock,
                actor_user_id=actor_user_id,
                description="Opening balance",
            )

        audit_services.log_event(
            db,
            actor_user_id=actor_user_id,
            entity_type="inventory_item",
            entity_id=item.id,
            action="create",
            after=audit_services.snapshot(item, _AUDIT_FIELDS),
        )
    return item


def update_item(
    db: Session,
    *,
    item_id: str,
    payload: schemas.InventoryItemUpdate,
    actor_user_id: str,
) -> models.InventoryItem:
    item = get_item(db, item_id)
    before = audit_services.snapshot(item, _AUDIT_FIELDS)

    data = payload.model_dump(exclude_unset=True)
    for field, value in data.items():
        if value is None:
            continue
        setattr(item, field, value.strip() if isinstance(value, str) else value)

    db.add(item)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=actor_user_id,
        entity_type="inventory_item",
        entity_id=item.id,
        action="update",
        before=before,
        after=audit_services.snapshot(item, _AUDIT_FIELDS),
    )
    return item


def _reference_counts(db: Session, item_id: str) -> dict:
    return {
        "stock_transactions": db.query(func.count(models.StockTransaction.id))
        .filter(models.StockTransaction.item_id == item_id)
        .scalar(),
        "purchase_requests": db.query(func.count(purchasing_models.PurchaseRequest.id))
        .filter(purchasing_models.PurchaseRequest.item_id == item_id)
        .scalar(),
        "purchase_request_items": db.query(func.count(purchasing_models.PurchaseRequestItem.id))
        .filter(purchasing_models.PurchaseRequestItem.item_id == item_id)
        .scalar(),
        "receptions": db.query(func.count(purchasing_models.Reception.id))
        .filter(purchasing_models.Reception.item_id == item_id)
        .scalar(),
        "distribution_items": db.query(func.count(distribution_models.DistributionItem.id))
        .filter(distribution_models.DistributionItem.item_id == item_id)
        .scalar(),
    }


def delete_item(db: Session, *, item_id: str, actor_user_id: str) -> None:
    """
    Items with history cannot be deleted: removing them would orphan
    ledger entries and break the balance fold.
    """
    item = get_item(db, item_id)
    references = {name: count for name, count in _reference_counts(db, item.id).items() if count}
    if references:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Item is referenced and cannot be deleted",
                "references": references,
            },
        )

    audit_services.log_event(
        db,
        actor_user_id=actor_user_id,
        entity_type="inventory_item",
        entity_id=item.id,
        action="delete",
        before=audit_services.snapshot(item, _AUDIT_FIELDS),
        critical=True,
    )
    db.delete(item)
    db.flush()


def list_transactions(
    db: Session,
    *,
    item_id: Optional[str] = None,
    transaction_type: Optional[models.TransactionType] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.StockTransaction]:
    query = db.query(models.StockTransaction)
    if item_id:
        query = query.filter(models.StockTransaction.item_id == item_id)
    if transaction_type:
        query = query.filter(models.StockTransaction.type == transaction_type)
    return (
        query.order_by(models.StockTransaction.created_at.desc(), models.StockTransaction.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
