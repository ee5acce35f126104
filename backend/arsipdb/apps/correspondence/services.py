from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.audit import services as audit_services
from arsipdb.utils.dates import as_utc, month_key, month_start, period_start, utcnow

from . import models, schemas

logger = logging.getLogger(__name__)

_AUDIT_FIELDS = ("number", "date", "subject", "type", "sender", "recipient", "status", "has_document")


def default_status(
    letter_type: models.LetterType,
    supplied: Optional[models.LetterStatus] = None,
) -> models.LetterStatus:
    """A letter entered into the register is no longer a draft."""
    if supplied is None or supplied == models.LetterStatus.DRAFT:
        if letter_type == models.LetterType.INCOMING:
            return models.LetterStatus.RECEIVED
        return models.LetterStatus.SENT
    return supplied


def get_letter(db: Session, letter_id: str) -> models.Letter:
    letter = db.get(models.Letter, letter_id)
    if letter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Letter not found")
    return letter


def _ensure_number_free(db: Session, number: str, *, exclude_id: Optional[str] = None) -> None:
    query = db.query(models.Letter.id).filter(models.Letter.number == number)
    if exclude_id:
        query = query.filter(models.Letter.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Letter number already exists")


def create_letter(
    db: Session,
    *,
    payload: schemas.LetterCreate,
    actor: account_models.User,
) -> models.Letter:
    number = payload.number.strip()
    _ensure_number_free(db, number)

    letter = models.Letter(
        number=number,
        date=payload.date,
        subject=payload.subject.strip(),
        type=payload.type,
        sender=payload.sender,
        recipient=payload.recipient,
        description=payload.description,
        status=default_status(payload.type, payload.status),
        has_document=payload.has_document,
        document_path=payload.document_path,
        document_name=payload.document_name,
        document_size=payload.document_size,
        document_type=payload.document_type,
        uploaded_at=utcnow() if payload.has_document else None,
        created_by_id=actor.id,
    )
    db.add(letter)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="letter",
        entity_id=letter.id,
        action="create",
        after=audit_services.snapshot(letter, _AUDIT_FIELDS),
    )
    return letter


def update_letter(
    db: Session,
    *,
    letter_id: str,
    payload: schemas.LetterUpdate,
    actor: account_models.User,
) -> models.Letter:
    letter = get_letter(db, letter_id)
    before = audit_services.snapshot(letter, _AUDIT_FIELDS)
    data = payload.model_dump(exclude_unset=True)

    number = data.pop("number", None)
    if number and number.strip() != letter.number:
        _ensure_number_free(db, number.strip(), exclude_id=letter.id)
        letter.number = number.strip()

    for field in ("date", "subject", "type", "status", "has_document"):
        value = data.pop(field, None)
        if value is not None:
            setattr(letter, field, value.strip() if isinstance(value, str) else value)

    # Optional text and document metadata may be cleared with an explicit null
    for field, value in data.items():
        setattr(letter, field, value)

    if letter.has_document and letter.uploaded_at is None:
        letter.uploaded_at = utcnow()

    db.add(letter)
    db.flush()
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="letter",
        entity_id=letter.id,
        action="update",
        before=before,
        after=audit_services.snapshot(letter, _AUDIT_FIELDS),
    )
    return letter


def delete_letter(db: Session, *, letter_id: str, actor: account_models.User) -> None:
    letter = get_letter(db, letter_id)
    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="letter",
        entity_id=letter.id,
        action="delete",
        before=audit_services.snapshot(letter, _AUDIT_FIELDS),
        critical=True,
    )
    db.delete(letter)
    db.flush()


def list_letters(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    letter_type: Optional[models.LetterType] = None,
    letter_status: Optional[models.LetterStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Tuple[List[models.Letter], int]:
    query = db.query(models.Letter)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.Letter.number.ilike(like),
                models.Letter.subject.ilike(like),
                models.Letter.sender.ilike(like),
                models.Letter.recipient.ilike(like),
            )
        )
    if letter_type:
        query = query.filter(models.Letter.type == letter_type)
    if letter_status:
        query = query.filter(models.Letter.status == letter_status)
    if start_date:
        query = query.filter(models.Letter.date >= start_date)
    if end_date:
        query = query.filter(models.Letter.date <= end_date)

    total = query.order_by(None).count()
    rows = (
        query.order_by(models.Letter.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def letter_stats(
    db: Session,
    *,
    period: str = "month",
    now: Optional[datetime] = None,
) -> schemas.LetterStats:
    """
    Register totals plus letters dated inside `period` (month / year are
    calendar-aligned; all has no bound). The monthly breakdown covers the
    period, or since January of last year for `all`.
    """
    now = now or utcnow()
    since = period_start(period, now)

    type_counts = Counter(
        {
            models.LetterType(letter_type): int(count)
            for letter_type, count in db.query(models.Letter.type, func.count(models.Letter.id))
            .group_by(models.Letter.type)
            .all()
        }
    )
    with_documents = (
        db.query(func.count(models.Letter.id)).filter(models.Letter.has_document.is_(True)).scalar() or 0
    )
    recent_query = db.query(func.count(models.Letter.id))
    if since is not None:
        recent_query = recent_query.filter(models.Letter.date >= since)

    breakdown_since = since or month_start(now).replace(year=now.year - 1, month=1)
    monthly: defaultdict = defaultdict(Counter)
    for letter_date, letter_type in (
        db.query(models.Letter.date, models.Letter.type).filter(models.Letter.date >= breakdown_since).all()
    ):
        monthly[month_key(as_utc(letter_date))][models.LetterType(letter_type)] += 1

    counterparties = Counter(
        letter.counterparty
        for letter in db.query(models.Letter).filter(
            or_(models.Letter.sender.isnot(None), models.Letter.recipient.isnot(None))
        )
        if letter.counterparty
    )

    return schemas.LetterStats(
        period=period,
        total_letters=sum(type_counts.values()),
        incoming_letters=type_counts[models.LetterType.INCOMING],
        outgoing_letters=type_counts[models.LetterType.OUTGOING],
        letters_with_documents=with_documents,
        recent_letters=recent_query.scalar() or 0,
        counterparties=[
            schemas.CounterpartyCount(name=name, count=count) for name, count in counterparties.most_common(10)
        ],
        monthly_data=[
            schemas.MonthlyLetterCount(
                month=key,
                incoming=monthly[key][models.LetterType.INCOMING],
                outgoing=monthly[key][models.LetterType.OUTGOING],
            )
            for key in sorted(monthly, reverse=True)[:12]
        ],
    )
