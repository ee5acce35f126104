from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

Snapshot = Dict[str, Any]


class AuditEventCreate(BaseModel):
    entity_type: str = Field(..., max_length=64)
    entity_id: str = Field(..., max_length=64)
    action: str = Field(..., max_length=64)
    actor_user_id: Optional[str] = None
    occurred_at: Optional[datetime] = None
    before: Optional[Snapshot] = None
    after: Optional[Snapshot] = None
    metadata: Optional[Snapshot] = None


class AuditEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    entity_type: str
    entity_id: str
    action: str
    actor_user_id: Optional[str] = None
    actor_name: Optional[str] = None
    occurred_at: datetime
    before: Optional[Snapshot] = None
    after: Optional[Snapshot] = None
    metadata: Optional[Snapshot] = Field(default=None, validation_alias="metadata_json")
