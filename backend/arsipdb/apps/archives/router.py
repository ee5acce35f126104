from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from arsipdb.security import get_current_active_user, require_admin
from arsipdb.database import get_db, get_read_db
from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.purchasing.schemas import Pagination
from arsipdb.apps.purchasing.services import pages_for
from arsipdb.utils.dates import utcnow

from . import models, schemas, services

router = APIRouter(prefix="/archives", tags=["archives"])


@router.get("", response_model=schemas.ArchivePage)
def list_archives(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    archive_status: Optional[models.ArchiveStatus] = Query(None, alias="status"),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    rows, total = services.list_archives(
        db,
        page=page,
        limit=limit,
        search=search,
        category=category,
        archive_status=archive_status,
    )
    now = utcnow()
    return schemas.ArchivePage(
        archives=[services.build_archive_read(archive, now) for archive in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=pages_for(total, limit)),
    )


@router.post("", response_model=schemas.ArchiveRead, status_code=status.HTTP_201_CREATED)
def create_archive(
    payload: schemas.ArchiveCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    archive = services.create_archive(db, payload=payload, actor=current_user)
    db.commit()
    db.refresh(archive)
    return services.build_archive_read(archive)


@router.get("/stats", response_model=schemas.ArchiveStats)
def archive_stats(
    period: Literal["month", "year", "all"] = "month",
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.archive_stats(db, period=period)


@router.get("/{archive_id}", response_model=schemas.ArchiveRead)
def get_archive(
    archive_id: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.build_archive_read(services.get_archive(db, archive_id))


@router.patch("/{archive_id}", response_model=schemas.ArchiveRead)
def update_archive(
    archive_id: str,
    payload: schemas.ArchiveUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    archive = services.update_archive(db, archive_id=archive_id, payload=payload, actor=current_user)
    db.commit()
    db.refresh(archive)
    return services.build_archive_read(archive)


@router.delete("/{archive_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_archive(
    archive_id: str,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_admin),
):
    services.delete_archive(db, archive_id=archive_id, actor=current_user)
    db.commit()
