"""
Retention arithmetic for archive records.

An archive is kept for `retention_period` years from its creation date.
After that it is EXPIRED (due for review or destruction); once its
destruction date has passed it is DESTROYED.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from arsipdb.utils.dates import add_years, as_utc, utcnow

from .models import Archive, RetentionState

NEAR_EXPIRY_DAYS = 30


def expiry_date(creation_date: datetime, retention_period: int) -> datetime:
    return add_years(as_utc(creation_date), retention_period)


def is_destroyed(archive: Archive, now: Optional[datetime] = None) -> bool:
    if archive.destruction_date is None:
        return False
    return as_utc(archive.destruction_date) <= (now or utcnow())


def retention_state(archive: Archive, now: Optional[datetime] = None) -> RetentionState:
    now = now or utcnow()
    if is_destroyed(archive, now):
        return RetentionState.DESTROYED
    if now >= expiry_date(archive.creation_date, archive.retention_period):
        return RetentionState.EXPIRED
    return RetentionState.ACTIVE


def days_till_expiry(archive: Archive, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    if is_destroyed(archive, now):
        return 0
    remaining = expiry_date(archive.creation_date, archive.retention_period) - now
    return max(0, math.ceil(remaining.total_seconds() / 86400))


def is_near_expiry(archive: Archive, now: Optional[datetime] = None, warning_days: int = NEAR_EXPIRY_DAYS) -> bool:
    if is_destroyed(archive, now):
        return False
    remaining = days_till_expiry(archive, now)
    return 0 < remaining <= warning_days
