from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Index, JSON, String, desc
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.dates import utcnow
from ...utils.identifiers import generate_uuid7


class AuditEvent(Base):
    """
    One row per administrative change: item edits and deletes, user
    administration, purchase-request reviews, receptions, distributions,
    letters and archive records.

    Rows are never updated. ``before``/``after`` hold JSON snapshots of the
    fields that changed; the actor is kept as a nullable reference so
    deleting a user does not erase the history.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_entity", "entity_type", "entity_id"),
        Index("ix_audit_events_time_desc", desc("occurred_at")),
        Index("ix_audit_events_action_time", "action", "occurred_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    entity_type = Column(String(64), nullable=False, index=True)
    entity_id = Column(String(64), nullable=False, index=True)
    action = Column(String(64), nullable=False, index=True)
    actor_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)

    actor = relationship("User", lazy="joined", viewonly=True)

    @property
    def actor_name(self):
        return self.actor.name if self.actor is not None else None

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} {self.entity_type}:{self.entity_id}>"
