from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class DashboardStats(BaseModel):
    pending_requests: int
    received_this_month: int
    distributed_this_month: int
    total_inventory: int
    low_stock_items: int
    critical_stock_items: int
    incoming_letters_this_month: int
    outgoing_letters_this_month: int


class Activity(BaseModel):
    id: str
    type: str
    title: str
    status: str
    actor_name: Optional[str] = None
    occurred_at: datetime


class DashboardActivities(BaseModel):
    inventory_activities: List[Activity]
    letter_archive_activities: List[Activity]
