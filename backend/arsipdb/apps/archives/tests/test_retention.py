from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.archives import models, retention, schemas, services
from arsipdb.utils.dates import utcnow


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _archive(creation_date: datetime, retention_period: int = 5, **extra) -> models.Archive:
    return models.Archive(
        code="ARS-001",
        title="Surat Keputusan Kepala",
        category="Kepegawaian",
        creation_date=creation_date,
        retention_period=retention_period,
        location="Rak A-1",
        **extra,
    )


def _create_user(db) -> account_models.User:
    user = account_models.User(
        username="arsiparis",
        name="Arsiparis",
        email="arsiparis@example.com",
        hashed_password="hash",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_expiry_is_creation_plus_retention_years():
    assert retention.expiry_date(_utc(2020, 1, 15), 5) == _utc(2025, 1, 15)
    # naive values are taken as UTC
    assert retention.expiry_date(datetime(2020, 1, 15), 1) == _utc(2021, 1, 15)


@pytest.mark.parametrize(
    ("now", "state", "days"),
    [
        (_utc(2024, 12, 1), models.RetentionState.ACTIVE, 31),
        (_utc(2024, 12, 31, 12), models.RetentionState.ACTIVE, 1),
        (_utc(2025, 1, 1), models.RetentionState.EXPIRED, 0),
        (_utc(2026, 6, 1), models.RetentionState.EXPIRED, 0),
    ],
)
def test_retention_state_and_days_left(now, state, days):
    archive = _archive(_utc(2020, 1, 1))
    assert retention.retention_state(archive, now) == state
    assert retention.days_till_expiry(archive, now) == days


def test_destroyed_only_once_destruction_date_has_passed():
    archive = _archive(_utc(2020, 1, 1), destruction_date=_utc(2025, 2, 1))

    assert retention.retention_state(archive, _utc(2025, 1, 15)) == models.RetentionState.EXPIRED
    assert retention.retention_state(archive, _utc(2025, 2, 1)) == models.RetentionState.DESTROYED
    assert retention.days_till_expiry(archive, _utc(2025, 3, 1)) == 0
    assert not retention.is_near_expiry(archive, _utc(2025, 3, 1))


def test_near_expiry_window():
    archive = _archive(_utc(2020, 1, 1))
    assert retention.is_near_expiry(archive, _utc(2024, 12, 15))
    assert not retention.is_near_expiry(archive, _utc(2024, 11, 1))
    assert not retention.is_near_expiry(archive, _utc(2025, 1, 2))


def test_scheduled_destruction_defaults_to_expiry(db_session):
    user = _create_user(db_session)
    archive = services.create_archive(
        db_session,
        payload=schemas.ArchiveCreate(
            code="ARS-2020-01",
            title="Laporan Tahunan",
            category="Keuangan",
            creation_date=_utc(2020, 3, 1),
            retention_period=10,
            status=models.ArchiveStatus.SCHEDULED_DESTRUCTION,
            location="Gudang B",
        ),
        actor=user,
    )
    db_session.commit()

    assert retention.retention_state(archive, _utc(2024, 1, 1)) == models.RetentionState.ACTIVE
    read = services.build_archive_read(archive, now=_utc(2024, 1, 1))
    assert read.expiry_date.year == 2030
    assert read.archived_by.username == user.username


def test_duplicate_code_is_rejected(db_session):
    user = _create_user(db_session)
    payload = schemas.ArchiveCreate(
        code="ARS-9",
        title="Notulen",
        category="Umum",
        creation_date=utcnow(),
        retention_period=2,
        location="Rak C",
    )
    services.create_archive(db_session, payload=payload, actor=user)
    db_session.commit()

    with pytest.raises(HTTPException) as excinfo:
        services.create_archive(db_session, payload=payload, actor=user)
    assert excinfo.value.status_code == 409


def test_stats_count_statuses_and_retention(db_session):
    user = _create_user(db_session)
    now = utcnow()

    def _create(code, status, creation_date, retention_period=1, destruction_date=None):
        services.create_archive(
            db_session,
            payload=schemas.ArchiveCreate(
                code=code,
                title=code,
                category="Umum",
                creation_date=creation_date,
                retention_period=retention_period,
                status=status,
                location="Rak",
                destruction_date=destruction_date,
            ),
            actor=user,
        )

    _create("A1", models.ArchiveStatus.PERMANENT, now - timedelta(days=30), retention_period=50)
    _create("A2", models.ArchiveStatus.UNDER_REVIEW, now - timedelta(days=800))
    _create(
        "A3",
        models.ArchiveStatus.SCHEDULED_DESTRUCTION,
        now - timedelta(days=300),
        destruction_date=now + timedelta(days=90),
    )
    _create(
        "A4",
        models.ArchiveStatus.SCHEDULED_DESTRUCTION,
        now - timedelta(days=900),
        destruction_date=now - timedelta(days=10),
    )
    db_session.commit()

    stats = services.archive_stats(db_session, period="all", now=now)

    assert stats.total_archives == 4
    assert stats.permanent_archives == 1
    assert stats.under_review == 1
    assert stats.scheduled_for_destruction == 2
    assert stats.nearing_destruction == 1
    assert stats.active == 2
    assert stats.expired == 1
    assert stats.destroyed == 1
    assert stats.recent_archives == 4
    assert stats.status_stats["scheduled_destruction"] == 2
    assert stats.categories_stats[0].category == "Umum"
