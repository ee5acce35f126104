from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from arsipdb.database import get_db
from arsipdb.security import get_current_active_user, verify_password

from . import models, schemas, services

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=schemas.UserRead, summary="Current user")
def read_current_user(current_user: models.User = Depends(get_current_active_user)):
    return current_user


@router.put("/me/password", response_model=schemas.UserRead, summary="Change own password")
def change_own_password(
    payload: schemas.OwnPasswordChange,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    user = services.get_user(db, current_user.id)
    if user is None or not verify_password(payload.current_password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )
    return services.change_password(db, user, payload, actor=user)
