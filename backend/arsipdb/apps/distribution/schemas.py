from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from arsipdb.apps.accounts.schemas import UserSummary
from arsipdb.apps.inventory.models import MAX_QUANTITY
from arsipdb.apps.inventory.schemas import InventoryItemBrief
from arsipdb.apps.purchasing.schemas import Pagination


class DistributionItemIn(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(..., ge=1, le=MAX_QUANTITY)
    unit: str = Field(..., min_length=1, max_length=32)
    item_id: Optional[str] = Field(
        default=None,
        description="Inventory item to draw from. Lines without one do not touch stock.",
    )


class DistributionCreate(BaseModel):
    staff_name: str = Field(..., min_length=1, max_length=255)
    department: str = Field(..., min_length=1, max_length=128)
    distribution_date: Optional[datetime] = None
    purpose: str = Field(..., min_length=1)
    items: List[DistributionItemIn] = Field(..., min_length=1)


class DistributionUpdate(BaseModel):
    note_number: Optional[str] = Field(default=None, min_length=1, max_length=32)
    staff_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    department: Optional[str] = Field(default=None, min_length=1, max_length=128)
    distribution_date: Optional[datetime] = None
    purpose: Optional[str] = Field(default=None, min_length=1)
    items: Optional[List[DistributionItemIn]] = Field(default=None, min_length=1)


class DistributionItemRead(BaseModel):
    id: str
    item_name: str
    quantity: int
    unit: str
    item_id: Optional[str] = None
    inventory: Optional[InventoryItemBrief] = None

    class Config:
        from_attributes = True


class DistributionRead(BaseModel):
    id: str
    note_number: str
    staff_name: str
    department: str
    distribution_date: datetime
    purpose: str
    created_at: datetime
    updated_at: datetime
    distributed_by: UserSummary
    items: List[DistributionItemRead] = []
    total_quantity: int

    class Config:
        from_attributes = True


class DistributionPage(BaseModel):
    distributions: List[DistributionRead]
    pagination: Pagination


class DepartmentCount(BaseModel):
    department: str
    count: int


class DistributedItemCount(BaseModel):
    item_name: str
    total_quantity: int
    distribution_count: int


class MonthlyDistributionCount(BaseModel):
    month: str
    count: int
    total_quantity: int


class DistributionStats(BaseModel):
    period: str
    total_distributions: int
    recent_distributions: int
    total_quantity_distributed: int
    department_stats: List[DepartmentCount]
    top_distributed_items: List[DistributedItemCount]
    monthly_distributions: List[MonthlyDistributionCount]
