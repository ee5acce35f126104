from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from arsipdb.apps.accounts.schemas import UserSummary
from arsipdb.apps.purchasing.schemas import Pagination

from .models import ArchiveStatus, RetentionState


class ArchiveCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=512)
    category: str = Field(..., min_length=1, max_length=128)
    creation_date: datetime
    retention_period: int = Field(..., ge=1, description="Years")
    status: ArchiveStatus = ArchiveStatus.UNDER_REVIEW
    location: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    notes: Optional[str] = None
    destruction_date: Optional[datetime] = None


class ArchiveUpdate(BaseModel):
    code: Optional[str] = Field(default=None, min_length=1, max_length=64)
    title: Optional[str] = Field(default=None, min_length=1, max_length=512)
    category: Optional[str] = Field(default=None, min_length=1, max_length=128)
    creation_date: Optional[datetime] = None
    retention_period: Optional[int] = Field(default=None, ge=1)
    status: Optional[ArchiveStatus] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    notes: Optional[str] = None
    destruction_date: Optional[datetime] = None


class ArchiveRead(BaseModel):
    id: str
    code: str
    title: str
    category: str
    creation_date: datetime
    retention_period: int
    status: ArchiveStatus
    location: str
    description: Optional[str] = None
    notes: Optional[str] = None
    destruction_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    archived_by: UserSummary

    expiry_date: datetime
    retention_state: RetentionState
    days_till_expiry: int
    near_expiry: bool


class ArchivePage(BaseModel):
    archives: List[ArchiveRead]
    pagination: Pagination


class CategoryCount(BaseModel):
    category: str
    count: int


class MonthlyArchiveCount(BaseModel):
    month: str
    count: int


class ArchiveStats(BaseModel):
    period: str
    total_archives: int
    permanent_archives: int
    scheduled_for_destruction: int
    under_review: int
    recent_archives: int
    nearing_destruction: int
    active: int
    expired: int
    destroyed: int
    status_stats: Dict[str, int]
    categories_stats: List[CategoryCount]
    monthly_data: List[MonthlyArchiveCount]
