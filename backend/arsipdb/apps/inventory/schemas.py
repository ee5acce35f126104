from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from arsipdb.apps.accounts.schemas import UserSummary

from . import models


class InventoryItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=128)
    unit: str = Field(..., min_length=1, max_length=32)
    stock: int = Field(default=0, ge=0, le=models.MAX_QUANTITY, description="Opening balance, posted as an IN entry.")
    min_stock: int = Field(default=0, ge=0, le=models.MAX_QUANTITY)


class InventoryItemUpdate(BaseModel):
    """Balance is not editable here; use /stock-transactions."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[str] = Field(default=None, min_length=1, max_length=128)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=32)
    min_stock: Optional[int] = Field(default=None, ge=0, le=models.MAX_QUANTITY)


class InventoryItemBrief(BaseModel):
    id: str
    name: str
    category: str
    unit: str
    stock: int
    min_stock: int

    class Config:
        from_attributes = True


class StockTransactionCreate(BaseModel):
    """
    `type` and `quantity` are passed to the ledger as sent, so a string or
    fractional quantity gets the ledger's 400 rather than being coerced.
    """

    item_id: str
    type: Any = Field(..., description="IN or OUT")
    quantity: Any = Field(..., description=f"Whole number of units, 1 to {models.MAX_QUANTITY}")
    description: Optional[str] = None


class StockTransactionRead(BaseModel):
    id: str
    item_id: str
    type: models.TransactionType
    quantity: int
    description: Optional[str] = None
    user_id: str
    created_at: datetime
    item: Optional[InventoryItemBrief] = None
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class InventoryItemRead(InventoryItemBrief):
    status: models.StockStatus
    created_at: datetime
    updated_at: datetime
    recent_transactions: List[StockTransactionRead] = []


class BalanceCheckRead(BaseModel):
    item_id: str
    stock: int
    ledger_balance: int
    consistent: bool
