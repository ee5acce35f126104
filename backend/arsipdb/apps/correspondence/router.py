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

from . import models, schemas, services

router = APIRouter(prefix="/letters", tags=["letters"])


@router.get("", response_model=schemas.LetterPage)
def list_letters(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    letter_type: Optional[models.LetterType] = Query(None, alias="type"),
    letter_status: Optional[models.LetterStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    rows, total = services.list_letters(
        db,
        page=page,
        limit=limit,
        search=search,
        letter_type=letter_type,
        letter_status=letter_status,
        start_date=start_date,
        end_date=end_date,
    )
    return schemas.LetterPage(
        letters=[schemas.LetterRead.model_validate(letter) for letter in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=pages_for(total, limit)),
    )


@router.post("", response_model=schemas.LetterRead, status_code=status.HTTP_201_CREATED)
def create_letter(
    payload: schemas.LetterCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    letter = services.create_letter(db, payload=payload, actor=current_user)
    db.commit()
    db.refresh(letter)
    return letter


@router.get("/stats", response_model=schemas.LetterStats)
def letter_stats(
    period: Literal["month", "year", "all"] = "month",
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.letter_stats(db, period=period)


@router.get("/{letter_id}", response_model=schemas.LetterRead)
def get_letter(
    letter_id: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_letter(db, letter_id)


@router.patch("/{letter_id}", response_model=schemas.LetterRead)
def update_letter(
    letter_id: str,
    payload: schemas.LetterUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    letter = services.update_letter(db, letter_id=letter_id, payload=payload, actor=current_user)
    db.commit()
    db.refresh(letter)
    return letter


@router.delete("/{letter_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_letter(
    letter_id: str,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_admin),
):
    services.delete_letter(db, letter_id=letter_id, actor=current_user)
    db.commit()
