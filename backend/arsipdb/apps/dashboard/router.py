from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from arsipdb.security import get_current_active_user
from arsipdb.database import get_read_db
from arsipdb.apps.accounts import models as account_models

from . import schemas, services

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=schemas.DashboardStats)
def dashboard_stats(
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.dashboard_stats(db)


@router.get("/activities", response_model=schemas.DashboardActivities)
def dashboard_activities(
    limit: int = Query(3, ge=1, le=20),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.dashboard_activities(db, limit=limit)
