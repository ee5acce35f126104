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


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArchiveStatus(str, enum.Enum):
    UNDER_REVIEW = "UNDER_REVIEW"
    PERMANENT = "PERMANENT"
    SCHEDULED_DESTRUCTION = "SCHEDULED_DESTRUCTION"


class RetentionState(str, enum.Enum):
    """Derived from creation date, retention period and destruction date."""

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    DESTROYED = "DESTROYED"


class Archive(Base):
    __tablename__ = "archives"
    __table_args__ = (
        CheckConstraint("retention_period >= 1", name="ck_archives_retention_period"),
        Index("ix_archives_status_destruction", "status", "destruction_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    title = Column(String(512), nullable=False)
    category = Column(String(128), nullable=False, index=True)
    creation_date = Column(DateTime(timezone=True), nullable=False)
    # Years
    retention_period = Column(Integer, nullable=False)
    status = Column(
        SAEnum(ArchiveStatus, name="archive_status", native_enum=False),
        nullable=False,
        default=ArchiveStatus.UNDER_REVIEW,
        index=True,
    )
    location = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    destruction_date = Column(DateTime(timezone=True), nullable=True)

    archived_by_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    archived_by = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        return f"<Archive {self.code} {self.status}>"
