# backend/arsipdb/apps/accounts/router_admin.py

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from arsipdb.database import get_db, get_read_db
from arsipdb.security import require_admin
from . import models, schemas, services

router = APIRouter(prefix="/users", tags=["users_admin"])


def _get_user_or_404(db: Session, user_id: str) -> models.User:
    user = services.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return user


def _raise_for(exc: ValueError) -> None:
    if isinstance(exc, services.DuplicateUserError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("", response_model=schemas.UserPage, summary="List users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[models.UserRole] = None,
    user_status: Optional[models.UserStatus] = Query(None, alias="status"),
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(require_admin),
):
    rows, total = services.list_users(
        db, page=page, limit=limit, search=search, role=role, user_status=user_status
    )
    return schemas.UserPage(
        items=[schemas.UserRead.model_validate(user) for user in rows],
        total=total,
        page=page,
        limit=limit,
    )


@router.post(
    "",
    response_model=schemas.UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    try:
        return services.create_user(db, payload, actor_user_id=current_user.id)
    except ValueError as exc:
        _raise_for(exc)


@router.get("/stats", response_model=schemas.UserStats, summary="User counts by role and status")
def user_stats(
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(require_admin),
):
    return services.user_stats(db)


@router.get("/{user_id}", response_model=schemas.UserRead, summary="Get a user")
def get_user(
    user_id: str,
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(require_admin),
):
    return _get_user_or_404(db, user_id)


@router.patch("/{user_id}", response_model=schemas.UserRead, summary="Update a user")
def update_user(
    user_id: str,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    try:
        return services.update_user(db, user, payload, actor=current_user)
    except ValueError as exc:
        _raise_for(exc)


@router.put("/{user_id}/password", response_model=schemas.UserRead, summary="Set a user's password")
def change_password(
    user_id: str,
    payload: schemas.PasswordChange,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    return services.change_password(db, user, payload, actor=current_user)


@router.delete(
    "/{user_id}",
    response_model=schemas.UserDeleteResult,
    summary="Delete a user (deactivates users with history)",
)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    try:
        return services.delete_user(db, user, actor=current_user)
    except ValueError as exc:
        _raise_for(exc)
