from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from arsipdb.apps.accounts.schemas import UserSummary
from arsipdb.apps.purchasing.schemas import Pagination

from .models import LetterStatus, LetterType


class DocumentMeta(BaseModel):
    has_document: bool = False
    document_path: Optional[str] = Field(default=None, max_length=512)
    document_name: Optional[str] = Field(default=None, max_length=255)
    document_size: Optional[int] = Field(default=None, ge=0)
    document_type: Optional[str] = Field(default=None, max_length=128)


class LetterCreate(DocumentMeta):
    number: str = Field(..., min_length=1, max_length=128)
    date: datetime
    subject: str = Field(..., min_length=1, max_length=512)
    type: LetterType
    sender: Optional[str] = Field(default=None, max_length=255)
    recipient: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    status: Optional[LetterStatus] = Field(
        default=None,
        description="Omitted or DRAFT becomes RECEIVED for incoming and SENT for outgoing letters.",
    )


class LetterUpdate(BaseModel):
    number: Optional[str] = Field(default=None, min_length=1, max_length=128)
    date: Optional[datetime] = None
    subject: Optional[str] = Field(default=None, min_length=1, max_length=512)
    type: Optional[LetterType] = None
    sender: Optional[str] = Field(default=None, max_length=255)
    recipient: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    status: Optional[LetterStatus] = None
    has_document: Optional[bool] = None
    document_path: Optional[str] = Field(default=None, max_length=512)
    document_name: Optional[str] = Field(default=None, max_length=255)
    document_size: Optional[int] = Field(default=None, ge=0)
    document_type: Optional[str] = Field(default=None, max_length=128)


class LetterRead(BaseModel):
    id: str
    number: str
    date: datetime
    subject: str
    type: LetterType
    sender: Optional[str] = None
    recipient: Optional[str] = None
    description: Optional[str] = None
    status: LetterStatus
    has_document: bool
    document_path: Optional[str] = None
    document_name: Optional[str] = None
    document_size: Optional[int] = None
    document_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    created_by: UserSummary

    class Config:
        from_attributes = True


class LetterPage(BaseModel):
    letters: List[LetterRead]
    pagination: Pagination


class CounterpartyCount(BaseModel):
    name: str
    count: int


class MonthlyLetterCount(BaseModel):
    month: str
    incoming: int
    outgoing: int


class LetterStats(BaseModel):
    period: str
    total_letters: int
    incoming_letters: int
    outgoing_letters: int
    letters_with_documents: int
    recent_letters: int
    counterparties: List[CounterpartyCount]
    monthly_data: List[MonthlyLetterCount]
