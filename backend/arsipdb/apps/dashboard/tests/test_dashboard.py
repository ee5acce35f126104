from __future__ import annotations

from datetime import timedelta

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.archives import models as archive_models
from arsipdb.apps.correspondence import models as letter_models
from arsipdb.apps.dashboard import services
from arsipdb.apps.inventory import models as inventory_models
from arsipdb.apps.purchasing import models as purchasing_models
from arsipdb.utils.dates import utcnow


def _seed(db):
    user = account_models.User(
        username="admin",
        name="Administrator",
        email="admin@example.com",
        hashed_password="hash",
        role=account_models.UserRole.ADMINISTRATOR,
    )
    db.add(user)
    db.flush()
    now = utcnow()
    db.add_all(
        [
            inventory_models.InventoryItem(name="Kertas", category="ATK", unit="rim", stock=0, min_stock=5),
            inventory_models.InventoryItem(name="Tinta", category="ATK", unit="pcs", stock=3, min_stock=5),
            inventory_models.InventoryItem(name="Map", category="Arsip", unit="pcs", stock=50, min_stock=5),
            purchasing_models.PurchaseRequest(
                request_number="PR-2024-01-001",
                item_name="Kertas",
                quantity=10,
                unit="rim",
                reason="Habis",
                requested_by_id=user.id,
            ),
            letter_models.Letter(
                number="001/IN",
                date=now,
                subject="Undangan",
                type=letter_models.LetterType.INCOMING,
                status=letter_models.LetterStatus.RECEIVED,
                sender="Dinas",
                created_by_id=user.id,
            ),
            archive_models.Archive(
                code="ARS-1",
                title="Berkas Lama",
                category="Umum",
                creation_date=now - timedelta(days=3000),
                retention_period=5,
                status=archive_models.ArchiveStatus.SCHEDULED_DESTRUCTION,
                location="Gudang",
                destruction_date=now + timedelta(days=3),
                archived_by_id=user.id,
            ),
        ]
    )
    db.commit()
    return user


def test_dashboard_stats_counts(db_session):
    _seed(db_session)
    stats = services.dashboard_stats(db_session)

    assert stats.pending_requests == 1
    assert stats.total_inventory == 3
    assert stats.low_stock_items == 1
    assert stats.critical_stock_items == 1
    assert stats.incoming_letters_this_month == 1
    assert stats.outgoing_letters_this_month == 0
    assert stats.received_this_month == 0
    assert stats.distributed_this_month == 0


def test_destruction_notice_is_pinned_first(db_session):
    _seed(db_session)
    activities = services.dashboard_activities(db_session, limit=2)

    assert [a.type for a in activities.inventory_activities] == ["purchase_request"]
    assert activities.inventory_activities[0].actor_name == "Administrator"

    letter_archive = activities.letter_archive_activities
    assert len(letter_archive) == 2
    assert letter_archive[0].type == "archive_destruction"
    assert letter_archive[0].title.startswith("1 archive")
