from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
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


class Distribution(Base):
    """Hand-out of supplies to a staff member / department (note DST-NNN)."""

    __tablename__ = "distributions"
    __table_args__ = (
        Index("ix_distributions_department_date", "department", "distribution_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    note_number = Column(String(32), nullable=False, unique=True, index=True)
    distributed_by_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    staff_name = Column(String(255), nullable=False)
    department = Column(String(128), nullable=False, index=True)
    distribution_date = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    purpose = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    distributed_by = relationship("User", lazy="joined")
    items = relationship(
        "DistributionItem",
        back_populates="distribution",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="DistributionItem.created_at",
    )

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.items)

    def __repr__(self) -> str:
        return f"<Distribution {self.note_number} dept={self.department}>"


class DistributionItem(Base):
    __tablename__ = "distribution_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_distribution_items_quantity"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    distribution_id = Column(
        String(36),
        ForeignKey("distributions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit = Column(String(32), nullable=False)
    # Free-text lines (items not kept in the store) have no inventory link
    item_id = Column(
        String(36),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    distribution = relationship("Distribution", back_populates="items")
    inventory = relationship("InventoryItem", lazy="joined")
