from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from arsipdb.security import get_current_active_user, require_admin
from arsipdb.database import get_db, get_read_db
from arsipdb.apps.accounts import models as account_models

from . import ledger, models, schemas, services

router = APIRouter(prefix="", tags=["inventory"])


@router.get("/inventory", response_model=List[schemas.InventoryItemRead])
def list_inventory(
    search: Optional[str] = None,
    category: Optional[str] = None,
    stock_status: Optional[models.StockStatus] = Query(None, alias="status"),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_items(db, search=search, category=category, stock_status=stock_status)


@router.post(
    "/inventory",
    response_model=schemas.InventoryItemRead,
    status_code=status.HTTP_201_CREATED,
)
def create_inventory_item(
    payload: schemas.InventoryItemCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    item = services.create_item(db, payload=payload, actor_user_id=current_user.id)
    db.refresh(item)
    return services.build_item_read(item, services.recent_transactions(db, item.id))


@router.get("/inventory/{item_id}", response_model=schemas.InventoryItemRead)
def get_inventory_item(
    item_id: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    item = services.get_item(db, item_id)
    return services.build_item_read(item, services.recent_transactions(db, item.id, limit=None))


@router.patch("/inventory/{item_id}", response_model=schemas.InventoryItemRead)
def update_inventory_item(
    item_id: str,
    payload: schemas.InventoryItemUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    item = services.update_item(db, item_id=item_id, payload=payload, actor_user_id=current_user.id)
    db.commit()
    db.refresh(item)
    return services.build_item_read(item, services.recent_transactions(db, item.id))


@router.delete("/inventory/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_inventory_item(
    item_id: str,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_admin),
):
    services.delete_item(db, item_id=item_id, actor_user_id=current_user.id)
    db.commit()


@router.get("/inventory/{item_id}/ledger-check", response_model=schemas.BalanceCheckRead)
def check_inventory_ledger(
    item_id: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    try:
        check = ledger.check_balance(db, item_id)
    except ledger.LedgerError as exc:
        ledger.raise_for_failure(exc.failure)
    return schemas.BalanceCheckRead(
        item_id=check.item_id,
        stock=check.stock,
        ledger_balance=check.ledger_balance,
        consistent=check.consistent,
    )


@router.post(
    "/stock-transactions",
    response_model=schemas.StockTransactionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_stock_transaction(
    payload: schemas.StockTransactionCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    result = ledger.apply_movement(
        db,
        item_id=payload.item_id,
        direction=payload.type,
        quantity=payload.quantity,
        description=payload.description,
        actor_user_id=current_user.id,
    )
    if not result.ok:
        ledger.raise_for_failure(result.error)
    return result.entry


@router.get("/stock-transactions", response_model=List[schemas.StockTransactionRead])
def list_stock_transactions(
    item_id: Optional[str] = None,
    transaction_type: Optional[models.TransactionType] = Query(None, alias="type"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_transactions(
        db,
        item_id=item_id,
        transaction_type=transaction_type,
        skip=skip,
        limit=limit,
    )
