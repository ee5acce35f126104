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
from arsipdb.utils.identifiers import generate_uuid7
from arsipdb.apps.accounts import models as account_models  # noqa: F401
from arsipdb.apps.inventory import models as inventory_models  # noqa: F401


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PurchaseRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RECEIVED = "RECEIVED"


class ReceptionStatus(str, enum.Enum):
    COMPLETE = "COMPLETE"
    PARTIAL = "PARTIAL"
    DIFFERENT = "DIFFERENT"


class PurchaseRequest(Base):
    """
    Request from staff to buy supplies, reviewed by an administrator.

    Older requests carry a single item in the header columns; newer ones
    list their lines in `items`.
    """

    __tablename__ = "purchase_requests"
    __table_args__ = (
        Index("ix_purchase_requests_status_created", "status", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    request_number = Column(String(32), nullable=False, unique=True, index=True)

    # legacy single-item fields
    item_name = Column(String(255), nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=0)
    unit = Column(String(32), nullable=False, default="")
    item_id = Column(
        String(36),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(
        SAEnum(PurchaseRequestStatus, name="purchase_request_status_enum", native_enum=False),
        nullable=False,
        default=PurchaseRequestStatus.PENDING,
        index=True,
    )
    request_date = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    requested_by_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    reviewed_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    review_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    requested_by = relationship("User", foreign_keys=[requested_by_id], lazy="joined")
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id], lazy="joined")
    item = relationship("InventoryItem", lazy="joined")
    items = relationship(
        "PurchaseRequestItem",
        back_populates="purchase_request",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseRequestItem.created_at",
    )
    receptions = relationship("Reception", back_populates="purchase_request", lazy="noload")

    def __repr__(self) -> str:
        return f"<PurchaseRequest {self.request_number} status={self.status}>"


class PurchaseRequestItem(Base):
    __tablename__ = "purchase_request_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_purchase_request_items_quantity"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    purchase_request_id = Column(
        String(36),
        ForeignKey("purchase_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit = Column(String(32), nullable=False)
    item_id = Column(
        String(36),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    purchase_request = relationship("PurchaseRequest", back_populates="items")


class Reception(Base):
    """
    Goods received against a request (or ad hoc). COMPLETE and PARTIAL
    receptions put the received quantity into stock; DIFFERENT ones wait
    for manual reconciliation and post nothing.
    """

    __tablename__ = "receptions"
    __table_args__ = (
        CheckConstraint("requested_quantity >= 1", name="ck_receptions_requested_quantity"),
        CheckConstraint("received_quantity >= 0", name="ck_receptions_received_quantity"),
        Index("ix_receptions_status_created", "status", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    purchase_request_id = Column(
        String(36),
        ForeignKey("purchase_requests.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    item_id = Column(
        String(36),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    item_name = Column(String(255), nullable=False)
    requested_quantity = Column(Integer, nullable=False)
    received_quantity = Column(Integer, nullable=False)
    unit = Column(String(32), nullable=False)
    receipt_date = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    status = Column(
        SAEnum(ReceptionStatus, name="reception_status_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    notes = Column(Text, nullable=True)
    received_by_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    received_by = relationship("User", lazy="joined")
    item = relationship("InventoryItem", lazy="joined")
    purchase_request = relationship("PurchaseRequest", back_populates="receptions", lazy="joined")

    @property
    def posted_quantity(self) -> int:
        """Quantity this reception has put into stock."""
        if self.status == ReceptionStatus.DIFFERENT:
            return 0
        return int(self.received_quantity or 0)

    def __repr__(self) -> str:
        return f"<Reception id={self.id} item={self.item_id} status={self.status}>"
