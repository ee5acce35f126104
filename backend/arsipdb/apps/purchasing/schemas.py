from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from arsipdb.apps.accounts.schemas import UserSummary
from arsipdb.apps.inventory.models import MAX_QUANTITY
from arsipdb.apps.inventory.schemas import InventoryItemBrief

from .models import PurchaseRequestStatus, ReceptionStatus


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# ---------------------------------------------------------------------------
# PURCHASE REQUESTS
# ---------------------------------------------------------------------------


class PurchaseRequestItemIn(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(..., ge=1, le=MAX_QUANTITY)
    unit: str = Field(..., min_length=1, max_length=32)
    item_id: Optional[str] = None


class PurchaseRequestCreate(BaseModel):
    """
    Either the single-item fields (item_name + quantity + unit) or a
    non-empty `items` list must be supplied.
    """

    item_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    quantity: Optional[int] = Field(default=None, ge=1, le=MAX_QUANTITY)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=32)
    item_id: Optional[str] = None
    items: Optional[List[PurchaseRequestItemIn]] = None
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _require_items(self) -> "PurchaseRequestCreate":
        single = bool(self.item_name and self.quantity and self.unit)
        if not single and not self.items:
            raise ValueError("Provide either single item fields or items[] with at least one item.")
        return self


class PurchaseRequestUpdate(BaseModel):
    item_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    quantity: Optional[int] = Field(default=None, ge=1, le=MAX_QUANTITY)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=32)
    item_id: Optional[str] = None
    items: Optional[List[PurchaseRequestItemIn]] = None
    reason: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None


class PurchaseRequestReview(BaseModel):
    action: Literal["APPROVE", "REJECT"]
    notes: Optional[str] = None


class PurchaseRequestBulkReview(PurchaseRequestReview):
    request_ids: List[str] = Field(..., min_length=1)


class PurchaseRequestItemRead(BaseModel):
    id: str
    item_name: str
    quantity: int
    unit: str
    item_id: Optional[str] = None

    class Config:
        from_attributes = True


class PurchaseRequestRead(BaseModel):
    id: str
    request_number: str
    item_name: str
    quantity: int
    unit: str
    item_id: Optional[str] = None
    reason: str
    notes: Optional[str] = None
    status: PurchaseRequestStatus
    request_date: datetime
    review_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    requested_by: UserSummary
    reviewed_by: Optional[UserSummary] = None
    item: Optional[InventoryItemBrief] = None
    items: List[PurchaseRequestItemRead] = []

    class Config:
        from_attributes = True


class PurchaseRequestPage(BaseModel):
    purchase_requests: List[PurchaseRequestRead]
    pagination: Pagination


class BulkReviewResult(BaseModel):
    updated: int
    status: PurchaseRequestStatus
    purchase_requests: List[PurchaseRequestRead]


class PurchaseRequestSummary(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    received: int
    approval_rate: Optional[float] = None


class MonthlyRequestCount(BaseModel):
    month: str
    count: int
    pending: int
    approved: int
    rejected: int


class TopRequestedItem(BaseModel):
    item_name: str
    request_count: int
    total_quantity: int


class PurchaseRequestStats(BaseModel):
    summary: PurchaseRequestSummary
    requests_by_month: List[MonthlyRequestCount]
    top_requested_items: List[TopRequestedItem]
    recent_activity: List[PurchaseRequestRead]


class DailyRequestCount(BaseModel):
    date: str
    total: int
    pending: int
    approved: int
    rejected: int


class PurchaseRequestReport(BaseModel):
    report_type: Literal["summary", "detailed", "trends"]
    period: str
    data: dict


# ---------------------------------------------------------------------------
# RECEPTIONS
# ---------------------------------------------------------------------------


class ReceptionCreate(BaseModel):
    purchase_request_id: Optional[str] = None
    item_id: str
    item_name: str = Field(..., min_length=1, max_length=255)
    requested_quantity: int = Field(..., ge=1, le=MAX_QUANTITY)
    received_quantity: int = Field(..., ge=0, le=MAX_QUANTITY)
    unit: str = Field(..., min_length=1, max_length=32)
    receipt_date: Optional[datetime] = None
    status: Optional[ReceptionStatus] = Field(
        default=None,
        description="Computed from the quantities when omitted; DIFFERENT may always be set by hand.",
    )
    notes: Optional[str] = None


class ReceptionUpdate(BaseModel):
    item_id: Optional[str] = None
    item_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    requested_quantity: Optional[int] = Field(default=None, ge=1, le=MAX_QUANTITY)
    received_quantity: Optional[int] = Field(default=None, ge=0, le=MAX_QUANTITY)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=32)
    receipt_date: Optional[datetime] = None
    status: Optional[ReceptionStatus] = None
    notes: Optional[str] = None


class PurchaseRequestRef(BaseModel):
    id: str
    request_number: str
    requested_by: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class ReceptionRead(BaseModel):
    id: str
    purchase_request_id: Optional[str] = None
    item_id: str
    item_name: str
    requested_quantity: int
    received_quantity: int
    unit: str
    receipt_date: datetime
    status: ReceptionStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    received_by: UserSummary
    item: Optional[InventoryItemBrief] = None
    purchase_request: Optional[PurchaseRequestRef] = None

    class Config:
        from_attributes = True


class ReceptionPage(BaseModel):
    receptions: List[ReceptionRead]
    pagination: Pagination


class ReceptionTrend(BaseModel):
    """Receptions per status over the last 7 days."""

    complete: int
    partial: int
    different: int


class ReceptionStats(BaseModel):
    total_receptions: int
    complete_receptions: int
    partial_receptions: int
    different_receptions: int
    completion_rate: int
    trends: ReceptionTrend
    recent_receptions: List[ReceptionRead]
