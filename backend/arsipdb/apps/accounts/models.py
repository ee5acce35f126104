# backend/arsipdb/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Index,
    String,
)

from arsipdb.database import Base
from arsipdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class UserRole(str, enum.Enum):
    """Roles used across the archive office backend."""

    ADMINISTRATOR = "ADMINISTRATOR"   # user admin, deletes, reviews
    STAFF = "STAFF"                   # day-to-day clerks and storekeepers


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class User(Base):
    """
    Principal resolved from the identity provider's token.

    Only ACTIVE users may act on the system; deactivated users keep their
    row so ledger entries and requests still resolve their actor.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_status", "role", "status"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    username = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)

    role = Column(
        Enum(UserRole, name="user_role_enum", native_enum=False),
        nullable=False,
        default=UserRole.STAFF,
        index=True,
    )
    status = Column(
        Enum(UserStatus, name="user_status_enum", native_enum=False),
        nullable=False,
        default=UserStatus.ACTIVE,
        index=True,
    )

    last_login_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMINISTRATOR

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username} role={self.role}>"
