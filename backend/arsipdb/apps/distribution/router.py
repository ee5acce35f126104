from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from arsipdb.security import get_current_active_user, require_admin
from arsipdb.database import get_db, get_read_db
from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.purchasing.schemas import Pagination
from arsipdb.apps.purchasing.services import pages_for

from . import schemas, services

router = APIRouter(prefix="/distribution", tags=["distribution"])


@router.get("", response_model=schemas.DistributionPage)
def list_distributions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    department: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    rows, total = services.list_distributions(
        db,
        page=page,
        limit=limit,
        search=search,
        department=department,
        start_date=start_date,
        end_date=end_date,
    )
    return schemas.DistributionPage(
        distributions=[schemas.DistributionRead.model_validate(d) for d in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=pages_for(total, limit)),
    )


@router.post("", response_model=schemas.DistributionRead, status_code=status.HTTP_201_CREATED)
def create_distribution(
    payload: schemas.DistributionCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    distribution = services.create_distribution(db, payload=payload, actor=current_user)
    db.refresh(distribution)
    return distribution


@router.get("/stats", response_model=schemas.DistributionStats)
def distribution_stats(
    period: Literal["week", "month", "quarter", "year"] = "month",
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.distribution_stats(db, period=period)


@router.get("/{distribution_id}", response_model=schemas.DistributionRead)
def get_distribution(
    distribution_id: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_distribution(db, distribution_id)


@router.patch("/{distribution_id}", response_model=schemas.DistributionRead)
def update_distribution(
    distribution_id: str,
    payload: schemas.DistributionUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    distribution = services.update_distribution(
        db, distribution_id=distribution_id, payload=payload, actor=current_user
    )
    db.refresh(distribution)
    return distribution


@router.delete("/{distribution_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_distribution(
    distribution_id: str,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_admin),
):
    services.delete_distribution(db, distribution_id=distribution_id, actor=current_user)
