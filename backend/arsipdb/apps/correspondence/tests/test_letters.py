from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi import HTTPException

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.correspondence import models, schemas, services
from arsipdb.apps.correspondence.router import router as letters_router
from arsipdb.security import require_admin


def _create_user(db) -> account_models.User:
    user = account_models.User(
        username="sekretaris",
        name="Sekretaris",
        email="sekretaris@example.com",
        hashed_password="hash",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _letter(number: str, letter_type: models.LetterType, **extra) -> schemas.LetterCreate:
    fields = {
        "number": number,
        "date": datetime(2024, 5, 10, tzinfo=timezone.utc),
        "subject": "Undangan Rapat Koordinasi",
        "type": letter_type,
    }
    fields.update(extra)
    return schemas.LetterCreate(**fields)


@pytest.mark.parametrize(
    ("letter_type", "supplied", "expected"),
    [
        (models.LetterType.INCOMING, None, models.LetterStatus.RECEIVED),
        (models.LetterType.OUTGOING, None, models.LetterStatus.SENT),
        (models.LetterType.INCOMING, models.LetterStatus.DRAFT, models.LetterStatus.RECEIVED),
        (models.LetterType.OUTGOING, models.LetterStatus.DRAFT, models.LetterStatus.SENT),
        (models.LetterType.OUTGOING, models.LetterStatus.RECEIVED, models.LetterStatus.RECEIVED),
    ],
)
def test_default_status(letter_type, supplied, expected):
    assert services.default_status(letter_type, supplied) == expected


def test_delete_route_requires_admin():
    delete_routes = [route for route in letters_router.routes if "DELETE" in (route.methods or [])]
    assert len(delete_routes) == 1
    dependencies = [dep.call for dep in delete_routes[0].dependant.dependencies]
    assert require_admin in dependencies


def test_create_and_duplicate_number(db_session):
    user = _create_user(db_session)
    letter = services.create_letter(
        db_session,
        payload=_letter("001/UPT/V/2024", models.LetterType.INCOMING, sender="Dinas Pendidikan", has_document=True),
        actor=user,
    )
    db_session.commit()

    assert letter.status == models.LetterStatus.RECEIVED
    assert letter.uploaded_at is not None
    assert letter.counterparty == "Dinas Pendidikan"

    with pytest.raises(HTTPException) as excinfo:
        services.create_letter(
            db_session,
            payload=_letter(" 001/UPT/V/2024 ", models.LetterType.OUTGOING),
            actor=user,
        )
    assert excinfo.value.status_code == 409


def test_update_can_clear_optional_fields(db_session):
    user = _create_user(db_session)
    letter = services.create_letter(
        db_session,
        payload=_letter("002/UPT/V/2024", models.LetterType.OUTGOING, recipient="Bupati", description="Lampiran 2"),
        actor=user,
    )
    db_session.commit()

    updated = services.update_letter(
        db_session,
        letter_id=letter.id,
        payload=schemas.LetterUpdate(description=None, subject="Revisi Undangan"),
        actor=user,
    )
    db_session.commit()

    assert updated.description is None
    assert updated.subject == "Revisi Undangan"
    assert updated.recipient == "Bupati"
    assert updated.uploaded_at is None


def test_stats_split_by_type_and_month(db_session):
    user = _create_user(db_session)
    now = datetime(2024, 5, 20, tzinfo=timezone.utc)
    services.create_letter(
        db_session, payload=_letter("L-1", models.LetterType.INCOMING, sender="Dinas Pendidikan"), actor=user
    )
    services.create_letter(
        db_session,
        payload=_letter("L-2", models.LetterType.OUTGOING, recipient="Dinas Pendidikan", has_document=True),
        actor=user,
    )
    services.create_letter(
        db_session,
        payload=_letter(
            "L-3", models.LetterType.INCOMING, sender="Kecamatan", date=datetime(2024, 2, 1, tzinfo=timezone.utc)
        ),
        actor=user,
    )
    db_session.commit()

    stats = services.letter_stats(db_session, period="month", now=now)

    assert stats.total_letters == 3
    assert stats.incoming_letters == 2
    assert stats.outgoing_letters == 1
    assert stats.letters_with_documents == 1
    assert stats.recent_letters == 2
    assert stats.counterparties[0].name == "Dinas Pendidikan"
    assert stats.counterparties[0].count == 2
    assert [(row.month, row.incoming, row.outgoing) for row in stats.monthly_data] == [("2024-05", 1, 1)]

    yearly = services.letter_stats(db_session, period="year", now=now)
    assert yearly.recent_letters == 3
    assert [row.month for row in yearly.monthly_data] == ["2024-05", "2024-02"]
