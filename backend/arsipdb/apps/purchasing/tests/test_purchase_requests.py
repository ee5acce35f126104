from __future__ import annotations

import csv
import io
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.purchasing import models, schemas, services
from arsipdb.apps.purchasing.router import router as purchasing_router
from arsipdb.utils.dates import utcnow


def _create_user(db, username: str, role=account_models.UserRole.STAFF) -> account_models.User:
    user = account_models.User(
        username=username,
        name=username.title(),
        email=f"{username}@example.com",
        hashed_password="hash",
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _create_request(db, requester, **overrides) -> models.PurchaseRequest:
    fields = {"item_name": "Pulpen Hitam", "quantity": 24, "unit": "pcs", "reason": "Kebutuhan bulanan"}
    fields.update(overrides)
    return services.create_purchase_request(
        db,
        payload=schemas.PurchaseRequestCreate(**fields),
        requester=requester,
    )


def test_router_has_expected_routes():
    def _has(path: str, method: str) -> bool:
        return any(route.path == path and method in (route.methods or []) for route in purchasing_router.routes)

    assert _has("/purchase-requests", "POST")
    assert _has("/purchase-requests/bulk-review", "POST")
    assert _has("/purchase-requests/{request_id}/review", "POST")
    assert _has("/reception", "POST")
    assert _has("/reception/{reception_id}", "DELETE")


def test_next_request_number_is_sequential_per_month(db_session):
    requester = _create_user(db_session, "staf")
    march = datetime(2024, 3, 5, tzinfo=timezone.utc)
    assert services.next_request_number(db_session, now=march) == "PR-2024-03-001"

    db_session.add(
        models.PurchaseRequest(
            request_number="PR-2024-03-007",
            item_name="Map",
            quantity=1,
            unit="pcs",
            reason="x",
            requested_by_id=requester.id,
        )
    )
    db_session.commit()

    assert services.next_request_number(db_session, now=march) == "PR-2024-03-008"
    assert services.next_request_number(db_session, now=datetime(2024, 4, 1, tzinfo=timezone.utc)) == "PR-2024-04-001"


def test_request_numbers_past_999_compare_numerically(db_session):
    requester = _create_user(db_session, "staf")
    for number in ("PR-2024-03-999", "PR-2024-03-1000", "PR-2024-03-MANUAL"):
        db_session.add(
            models.PurchaseRequest(
                request_number=number,
                item_name="Map",
                quantity=1,
                unit="pcs",
                reason="x",
                requested_by_id=requester.id,
            )
        )
    db_session.commit()

    march = datetime(2024, 3, 20, tzinfo=timezone.utc)
    assert services.next_request_number(db_session, now=march) == "PR-2024-03-1001"


def test_create_assigns_number_and_pending_status(db_session):
    requester = _create_user(db_session, "staf")
    now = utcnow()

    first = _create_request(db_session, requester)
    second = _create_request(
        db_session,
        requester,
        item_name=None,
        quantity=None,
        unit=None,
        items=[schemas.PurchaseRequestItemIn(item_name="Map Arsip", quantity=50, unit="pcs")],
    )

    prefix = f"PR-{now.year:04d}-{now.month:02d}-"
    assert first.request_number == f"{prefix}001"
    assert second.request_number == f"{prefix}002"
    assert first.status == models.PurchaseRequestStatus.PENDING
    assert [line.item_name for line in second.items] == ["Map Arsip"]


def test_create_requires_single_fields_or_lines():
    with pytest.raises(ValidationError):
        schemas.PurchaseRequestCreate(reason="Kosong")


def test_unknown_inventory_item_is_rejected(db_session):
    requester = _create_user(db_session, "staf")
    with pytest.raises(HTTPException) as excinfo:
        _create_request(db_session, requester, item_id="missing-item")
    assert excinfo.value.status_code == 404
    assert db_session.query(models.PurchaseRequest).count() == 0


def test_review_only_pending(db_session):
    requester = _create_user(db_session, "staf")
    admin = _create_user(db_session, "admin", account_models.UserRole.ADMINISTRATOR)
    pr = _create_request(db_session, requester)

    reviewed = services.review_purchase_request(
        db_session,
        request_id=pr.id,
        payload=schemas.PurchaseRequestReview(action="REJECT", notes="Anggaran habis"),
        reviewer=admin,
    )
    db_session.commit()
    assert reviewed.status == models.PurchaseRequestStatus.REJECTED
    assert reviewed.reviewed_by_id == admin.id
    assert reviewed.review_date is not None
    assert reviewed.notes == "Anggaran habis"

    with pytest.raises(HTTPException) as excinfo:
        services.review_purchase_request(
            db_session,
            request_id=pr.id,
            payload=schemas.PurchaseRequestReview(action="APPROVE"),
            reviewer=admin,
        )
    assert excinfo.value.status_code == 400


def test_bulk_review_is_all_or_nothing(db_session):
    requester = _create_user(db_session, "staf")
    admin = _create_user(db_session, "admin", account_models.UserRole.ADMINISTRATOR)
    pending = _create_request(db_session, requester)
    already = _create_request(db_session, requester)
    services.review_purchase_request(
        db_session,
        request_id=already.id,
        payload=schemas.PurchaseRequestReview(action="APPROVE"),
        reviewer=admin,
    )
    db_session.commit()

    with pytest.raises(HTTPException) as excinfo:
        services.bulk_review_purchase_requests(
            db_session,
            payload=schemas.PurchaseRequestBulkReview(action="APPROVE", request_ids=[pending.id, already.id]),
            reviewer=admin,
        )
    assert excinfo.value.status_code == 400
    db_session.refresh(pending)
    assert pending.status == models.PurchaseRequestStatus.PENDING

    with pytest.raises(HTTPException):
        services.bulk_review_purchase_requests(
            db_session,
            payload=schemas.PurchaseRequestBulkReview(action="APPROVE", request_ids=[pending.id, "nope"]),
            reviewer=admin,
        )

    reviewed = services.bulk_review_purchase_requests(
        db_session,
        payload=schemas.PurchaseRequestBulkReview(action="APPROVE", request_ids=[pending.id, pending.id]),
        reviewer=admin,
    )
    db_session.commit()
    assert [pr.id for pr in reviewed] == [pending.id]
    assert pending.status == models.PurchaseRequestStatus.APPROVED


def test_staff_sees_only_own_requests(db_session):
    alice = _create_user(db_session, "alice")
    bob = _create_user(db_session, "bob")
    admin = _create_user(db_session, "admin", account_models.UserRole.ADMINISTRATOR)
    own = _create_request(db_session, alice)
    other = _create_request(db_session, bob)

    rows, total = services.list_purchase_requests(db_session, requested_by_id=alice.id)
    assert total == 1
    assert rows[0].id == own.id

    with pytest.raises(HTTPException) as excinfo:
        services.get_visible_purchase_request(db_session, request_id=other.id, viewer=alice)
    assert excinfo.value.status_code == 403
    assert services.get_visible_purchase_request(db_session, request_id=other.id, viewer=admin).id == other.id


def test_staff_cannot_edit_reviewed_request(db_session):
    staff = _create_user(db_session, "staf")
    admin = _create_user(db_session, "admin", account_models.UserRole.ADMINISTRATOR)
    pr = _create_request(db_session, staff)
    services.review_purchase_request(
        db_session,
        request_id=pr.id,
        payload=schemas.PurchaseRequestReview(action="APPROVE"),
        reviewer=admin,
    )
    db_session.commit()

    with pytest.raises(HTTPException) as excinfo:
        services.update_purchase_request(
            db_session,
            request_id=pr.id,
            payload=schemas.PurchaseRequestUpdate(quantity=5),
            actor=staff,
        )
    assert excinfo.value.status_code == 403


def test_csv_export_has_header_and_rows(db_session):
    staff = _create_user(db_session, "staf")
    pr = _create_request(db_session, staff)

    rows = list(csv.reader(io.StringIO(services.render_csv([pr]))))
    assert rows[0] == services.CSV_HEADERS
    assert rows[1][1] == pr.request_number
    assert rows[1][7] == staff.name
