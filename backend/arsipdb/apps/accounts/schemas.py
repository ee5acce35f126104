# backend/arsipdb/apps/accounts/schemas.py

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from .models import UserRole, UserStatus


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    role: UserRole = UserRole.STAFF


class UserCreate(UserBase):
    password: str = Field(..., min_length=6)
    status: UserStatus = UserStatus.ACTIVE


class UserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=64)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None


class PasswordChange(BaseModel):
    password: str = Field(..., min_length=6)


class OwnPasswordChange(PasswordChange):
    current_password: str


class UserRead(UserBase):
    id: str
    status: UserStatus
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    """Display fields of an actor embedded in other resources."""

    id: str
    name: str
    username: str

    class Config:
        from_attributes = True


class UserStats(BaseModel):
    total: int
    admin: int
    staff: int
    active: int
    inactive: int


class UserPage(BaseModel):
    items: List[UserRead]
    total: int
    page: int
    limit: int


class UserDeleteResult(BaseModel):
    """Users with history are deactivated rather than removed."""

    deleted: bool
    deactivated: bool
    user: Optional[UserRead] = None
