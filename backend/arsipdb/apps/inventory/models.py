from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from arsipdb.database import Base
from arsipdb.apps.accounts import models as account_models  # noqa: F401  (registers User)
from arsipdb.utils.identifiers import generate_uuid7


# Largest value the INTEGER stock and quantity columns hold (PostgreSQL int4).
MAX_QUANTITY = 2**31 - 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class StockStatus(str, enum.Enum):
    CRITICAL = "critical"
    LOW = "low"
    NORMAL = "normal"


class InventoryItem(Base):
    """
    Consumable kept by the office store (paper, toner, folders, ...).

    `stock` is a cached balance: it always equals the signed sum of the
    item's StockTransaction rows and is only changed by the ledger engine.
    """

    __tablename__ = "inventory_items"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_inventory_items_stock_nonneg"),
        CheckConstraint("min_stock >= 0", name="ck_inventory_items_min_stock_nonneg"),
        Index("ix_inventory_items_category_name", "category", "name"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(128), nullable=False, index=True)
    unit = Column(String(32), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    transactions = relationship(
        "StockTransaction",
        back_populates="item",
        lazy="noload",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} stock={self.stock}>"


class StockTransaction(Base):
    """
    One immutable ledger entry. Corrections are new compensating entries;
    rows are never updated or deleted.
    """

    __tablename__ = "stock_transactions"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_transactions_quantity_pos"),
        Index("ix_stock_transactions_item_time", "item_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    item_id = Column(
        String(36),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    type = Column(
        SAEnum(TransactionType, name="stock_transaction_type_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    quantity = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    item = relationship("InventoryItem", back_populates="transactions", lazy="joined")
    user = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        return f"<StockTransaction id={self.id} item={self.item_id} {self.type} {self.quantity}>"
