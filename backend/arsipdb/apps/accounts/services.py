# backend/arsipdb/apps/accounts/services.py

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from arsipdb.security import get_password_hash
from arsipdb.apps.audit import services as audit_services

from . import models, schemas

logger = logging.getLogger(__name__)

_AUDIT_FIELDS = ("username", "name", "email", "role", "status")


class DuplicateUserError(ValueError):
    """Username or email already taken."""


class SelfManagementError(ValueError):
    """An administrator tried to delete or deactivate their own account."""


# ---------------------------------------------------------------------------
# Normalisation helpers
# ---------------------------------------------------------------------------


def _normalise_email(value: str) -> str:
    return value.strip().lower()


def _normalise_username(value: str) -> str:
    return value.strip()


def _ensure_unique(
    db: Session,
    *,
    username: Optional[str] = None,
    email: Optional[str] = None,
    exclude_id: Optional[str] = None,
) -> None:
    clauses = []
    if username:
        clauses.append(models.User.username == username)
    if email:
        clauses.append(models.User.email == email)
    if not clauses:
        return
    query = db.query(models.User).filter(or_(*clauses))
    if exclude_id:
        query = query.filter(models.User.id != exclude_id)
    if query.first():
        raise DuplicateUserError("Username or email already exists.")


# ---------------------------------------------------------------------------
# User lifecycle
# ---------------------------------------------------------------------------


def list_users(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    role: Optional[models.UserRole] = None,
    user_status: Optional[models.UserStatus] = None,
) -> Tuple[List[models.User], int]:
    query = db.query(models.User)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.User.name.ilike(like),
                models.User.username.ilike(like),
                models.User.email.ilike(like),
            )
        )
    if role:
        query = query.filter(models.User.role == role)
    if user_status:
        query = query.filter(models.User.status == user_status)

    total = query.order_by(None).count()
    rows = (
        query.order_by(models.User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def get_user(db: Session, user_id: str) -> Optional[models.User]:
    return db.get(models.User, user_id)


def create_user(
    db: Session,
    data: schemas.UserCreate,
    *,
    actor_user_id: Optional[str] = None,
) -> models.User:
    username = _normalise_username(data.username)
    email = _normalise_email(data.email)
    _ensure_unique(db, username=username, email=email)

    user = models.User(
        username=username,
        name=data.name.strip(),
        email=email,
        hashed_password=get_password_hash(data.password),
        role=data.role,
        status=data.status,
    )
    db.add(user)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=actor_user_id,
        entity_type="user",
        entity_id=user.id,
        action="create",
        after=audit_services.snapshot(user, _AUDIT_FIELDS),
        critical=True,
    )
    db.commit()
    db.refresh(user)
    return user


def update_user(
    db: Session,
    user: models.User,
    data: schemas.UserUpdate,
    *,
    actor: models.User,
) -> models.User:
    if data.status == models.UserStatus.INACTIVE and user.id == actor.id:
        raise SelfManagementError("You cannot deactivate your own account.")

    username = _normalise_username(data.username) if data.username is not None else None
    email = _normalise_email(data.email) if data.email is not None else None
    _ensure_unique(db, username=username, email=email, exclude_id=user.id)

    before = audit_services.snapshot(user, _AUDIT_FIELDS)
    if username is not None:
        user.username = username
    if email is not None:
        user.email = email
    if data.name is not None:
        user.name = data.name.strip()
    if data.role is not None:
        user.role = data.role
    if data.status is not None:
        user.status = data.status

    db.add(user)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="user",
        entity_id=user.id,
        action="update",
        before=before,
        after=audit_services.snapshot(user, _AUDIT_FIELDS),
        critical=True,
    )
    db.commit()
    db.refresh(user)
    return user


def change_password(
    db: Session,
    user: models.User,
    data: schemas.PasswordChange,
    *,
    actor: models.User,
) -> models.User:
    user.hashed_password = get_password_hash(data.password)
    db.add(user)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="user",
        entity_id=user.id,
        action="password_change",
        critical=True,
    )
    db.commit()
    db.refresh(user)
    return user


def related_record_counts(db: Session, user_id: str) -> Dict[str, int]:
    """Rows in other apps that point at this user."""
    # Imported here: those apps import accounts.models at load time.
    from arsipdb.apps.archives import models as archive_models
    from arsipdb.apps.correspondence import models as letter_models
    from arsipdb.apps.distribution import models as distribution_models
    from arsipdb.apps.inventory import models as inventory_models
    from arsipdb.apps.purchasing import models as purchasing_models

    checks = {
        "purchase_requests": (purchasing_models.PurchaseRequest.id, purchasing_models.PurchaseRequest.requested_by_id),
        "reviewed_requests": (purchasing_models.PurchaseRequest.id, purchasing_models.PurchaseRequest.reviewed_by_id),
        "receptions": (purchasing_models.Reception.id, purchasing_models.Reception.received_by_id),
        "distributions": (distribution_models.Distribution.id, distribution_models.Distribution.distributed_by_id),
        "letters": (letter_models.Letter.id, letter_models.Letter.created_by_id),
        "archives": (archive_models.Archive.id, archive_models.Archive.archived_by_id),
        "stock_transactions": (inventory_models.StockTransaction.id, inventory_models.StockTransaction.user_id),
    }
    return {
        name: db.query(func.count(pk)).filter(fk == user_id).scalar() or 0
        for name, (pk, fk) in checks.items()
    }


def delete_user(
    db: Session,
    user: models.User,
    *,
    actor: models.User,
) -> schemas.UserDeleteResult:
    """
    Remove a user, or deactivate them when other records reference them
    (ledger entries, requests, letters ...) so that history stays attributable.
    """
    if user.id == actor.id:
        raise SelfManagementError("You cannot delete your own account.")

    before = audit_services.snapshot(user, _AUDIT_FIELDS)
    related = {name: count for name, count in related_record_counts(db, user.id).items() if count}
    if related:
        user.status = models.UserStatus.INACTIVE
        db.add(user)
        db.flush()
        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="user",
            entity_id=user.id,
            action="deactivate",
            before=before,
            after=audit_services.snapshot(user, _AUDIT_FIELDS),
            metadata={"related": related},
            critical=True,
        )
        db.commit()
        db.refresh(user)
        logger.info("User %s has related data; deactivated instead of deleted", user.id)
        return schemas.UserDeleteResult(
            deleted=False,
            deactivated=True,
            user=schemas.UserRead.model_validate(user),
        )

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="user",
        entity_id=user.id,
        action="delete",
        before=before,
        critical=True,
    )
    db.delete(user)
    db.commit()
    return schemas.UserDeleteResult(deleted=True, deactivated=False)


def user_stats(db: Session) -> schemas.UserStats:
    roles = dict(db.query(models.User.role, func.count(models.User.id)).group_by(models.User.role).all())
    statuses = dict(db.query(models.User.status, func.count(models.User.id)).group_by(models.User.status).all())
    return schemas.UserStats(
        total=sum(roles.values()),
        admin=roles.get(models.UserRole.ADMINISTRATOR, 0),
        staff=roles.get(models.UserRole.STAFF, 0),
        active=statuses.get(models.UserStatus.ACTIVE, 0),
        inactive=statuses.get(models.UserStatus.INACTIVE, 0),
    )
