from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
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


class LetterType(str, enum.Enum):
    INCOMING = "INCOMING"
    OUTGOING = "OUTGOING"


class LetterStatus(str, enum.Enum):
    RECEIVED = "RECEIVED"
    SENT = "SENT"
    DRAFT = "DRAFT"


class Letter(Base):
    """
    Register entry for an incoming or outgoing letter.

    The document_* columns describe an attached scan; the file itself is
    stored outside the database.
    """

    __tablename__ = "letters"
    __table_args__ = (
        Index("ix_letters_type_date", "type", "date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    number = Column(String(128), nullable=False, unique=True, index=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    subject = Column(String(512), nullable=False)
    type = Column(SAEnum(LetterType, name="letter_type", native_enum=False), nullable=False, index=True)
    sender = Column(String(255), nullable=True)
    recipient = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(
        SAEnum(LetterStatus, name="letter_status", native_enum=False),
        nullable=False,
        default=LetterStatus.DRAFT,
        index=True,
    )

    has_document = Column(Boolean, nullable=False, default=False, index=True)
    document_path = Column(String(512), nullable=True)
    document_name = Column(String(255), nullable=True)
    document_size = Column(Integer, nullable=True)
    document_type = Column(String(128), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=True)

    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    created_by = relationship("User", lazy="joined")

    @property
    def counterparty(self):
        return self.sender or self.recipient

    def __repr__(self) -> str:
        return f"<Letter {self.number} {self.type}>"
