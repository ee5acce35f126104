from __future__ import annotations

import random
import sqlite3

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.inventory import ledger
from arsipdb.apps.inventory import models as inventory_models
from arsipdb.apps.inventory import schemas as inventory_schemas
from arsipdb.apps.inventory import services as inventory_services

IN = inventory_models.TransactionType.IN
OUT = inventory_models.TransactionType.OUT


def _create_user(
    db,
    username: str = "gudang",
    *,
    role: account_models.UserRole = account_models.UserRole.STAFF,
    status: account_models.UserStatus = account_models.UserStatus.ACTIVE,
) -> account_models.User:
    user = account_models.User(
        username=username,
        name=f"{username.title()} User",
        email=f"{username}@example.com",
        hashed_password="hash",
        role=role,
        status=status,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _create_item(db, *, stock: int = 0, min_stock: int = 0, name: str = "Kertas HVS A4") -> inventory_models.InventoryItem:
    item = inventory_models.InventoryItem(
        name=name,
        category="Alat Tulis",
        unit="rim",
        stock=stock,
        min_stock=min_stock,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def _apply(db, item, user, direction, quantity, description=None) -> ledger.MovementResult:
    return ledger.apply_movement(
        db,
        item_id=item.id,
        direction=direction,
        quantity=quantity,
        actor_user_id=user.id,
        description=description,
    )


def _entries(db, item_id):
    return (
        db.query(inventory_models.StockTransaction)
        .filter(inventory_models.StockTransaction.item_id == item_id)
        .all()
    )


@pytest.mark.parametrize(
    ("stock", "min_stock", "expected"),
    [
        (0, 10, inventory_models.StockStatus.CRITICAL),
        (-1, 0, inventory_models.StockStatus.CRITICAL),
        (0, 0, inventory_models.StockStatus.CRITICAL),
        (5, 10, inventory_models.StockStatus.LOW),
        (10, 10, inventory_models.StockStatus.LOW),
        (11, 10, inventory_models.StockStatus.NORMAL),
        (1, 0, inventory_models.StockStatus.NORMAL),
    ],
)
def test_classify_status_table(stock, min_stock, expected):
    assert ledger.classify_status(stock, min_stock) == expected


def test_restock_overdraw_and_drain_scenario(db_session):
    user = _create_user(db_session)
    item = inventory_services.create_item(
        db_session,
        payload=inventory_schemas.InventoryItemCreate(
            name="Kertas HVS A4", category="Alat Tulis", unit="rim", stock=5, min_stock=10
        ),
        actor_user_id=user.id,
    )
    assert item.stock == 5
    assert ledger.classify_status(item.stock, item.min_stock) == inventory_models.StockStatus.LOW

    restock = _apply(db_session, item, user, "IN", 20, "Restock")
    assert restock.ok
    assert restock.entry.type == IN
    assert restock.entry.user.name == user.name
    assert restock.entry.user.username == user.username
    assert restock.entry.item.stock == 25
    assert ledger.classify_status(25, 10) == inventory_models.StockStatus.NORMAL

    overdraw = _apply(db_session, item, user, "OUT", 30)
    assert not overdraw.ok
    assert overdraw.error.kind == ledger.LedgerErrorKind.INSUFFICIENT_STOCK
    db_session.refresh(item)
    assert item.stock == 25
    assert len(_entries(db_session, item.id)) == 2

    drain = _apply(db_session, item, user, OUT, 25)
    assert drain.ok
    db_session.refresh(item)
    assert item.stock == 0
    assert ledger.classify_status(item.stock, item.min_stock) == inventory_models.StockStatus.CRITICAL
    assert ledger.check_balance(db_session, item.id).consistent


def test_balance_equals_ledger_fold_over_random_sequence(db_session):
    user = _create_user(db_session)
    item = _create_item(db_session)
    rng = random.Random(20240501)

    for _ in range(60):
        direction = rng.choice([IN, OUT])
        quantity = rng.randint(1, 15)
        before = item.stock
        result = _apply(db_session, item, user, direction, quantity)
        db_session.refresh(item)
        if result.ok:
            assert item.stock == before + (quantity if direction == IN else -quantity)
        else:
            assert result.error.kind == ledger.LedgerErrorKind.INSUFFICIENT_STOCK
            assert item.stock == before
        assert item.stock >= 0
        assert item.stock == ledger.ledger_balance(db_session, item.id)


def test_in_then_out_same_quantity_restores_balance(db_session):
    user = _create_user(db_session)
    item = _create_item(db_session)
    assert _apply(db_session, item, user, IN, 7).ok
    assert _apply(db_session, item, user, OUT, 7).ok
    db_session.refresh(item)
    assert item.stock == 0
    assert len(_entries(db_session, item.id)) == 2


@pytest.mark.parametrize("quantity", [0, -3, 2.5, 4.0, "4", True, None, inventory_models.MAX_QUANTITY + 1, 2**63])
def test_invalid_quantity_is_rejected_without_writes(db_session, quantity):
    user = _create_user(db_session)
    item = _create_item(db_session)
    result = _apply(db_session, item, user, IN, quantity)
    assert result.error.kind == ledger.LedgerErrorKind.INVALID_ARGUMENT
    assert _entries(db_session, item.id) == []


@pytest.mark.parametrize("direction", ["SIDEWAYS", "", None])
def test_invalid_direction_is_rejected(db_session, direction):
    user = _create_user(db_session)
    item = _create_item(db_session)
    result = _apply(db_session, item, user, direction, 1)
    assert result.error.kind == ledger.LedgerErrorKind.INVALID_ARGUMENT


def test_direction_is_case_insensitive(db_session):
    user = _create_user(db_session)
    item = _create_item(db_session)
    assert _apply(db_session, item, user, "in", 3).ok
    db_session.refresh(item)
    assert item.stock == 3


def test_unknown_item_is_not_found(db_session):
    user = _create_user(db_session)
    result = ledger.apply_movement(
        db_session,
        item_id="does-not-exist",
        direction=IN,
        quantity=1,
        actor_user_id=user.id,
    )
    assert result.error.kind == ledger.LedgerErrorKind.NOT_FOUND
    assert result.error.http_status == 404


def test_inactive_or_unknown_actor_is_unauthorized(db_session):
    inactive = _create_user(db_session, "pensiun", status=account_models.UserStatus.INACTIVE)
    item = _create_item(db_session, stock=0)

    result = _apply(db_session, item, inactive, IN, 5)
    assert result.error.kind == ledger.LedgerErrorKind.UNAUTHORIZED

    result = ledger.apply_movement(db_session, item_id=item.id, direction=IN, quantity=5, actor_user_id=None)
    assert result.error.kind == ledger.LedgerErrorKind.UNAUTHORIZED

    db_session.refresh(item)
    assert item.stock == 0
    assert _entries(db_session, item.id) == []


def test_post_movement_raises_and_caller_rolls_back(db_session):
    user = _create_user(db_session)
    first = _create_item(db_session, stock=0, name="Map Arsip")
    second = _create_item(db_session, stock=0, name="Boks Arsip")
    assert _apply(db_session, first, user, IN, 10).ok
    assert _apply(db_session, second, user, IN, 1).ok

    with pytest.raises(HTTPException) as excinfo:
        with ledger.ledger_transaction(db_session):
            ledger.post_movement(db_session, item_id=first.id, direction=OUT, quantity=4, actor_user_id=user.id)
            ledger.post_movement(db_session, item_id=second.id, direction=OUT, quantity=2, actor_user_id=user.id)

    assert excinfo.value.status_code == 400
    db_session.refresh(first)
    db_session.refresh(second)
    assert first.stock == 10
    assert second.stock == 1
    assert len(_entries(db_session, first.id)) == 1


def test_raise_for_failure_maps_kinds_to_http():
    cases = {
        ledger.LedgerErrorKind.NOT_FOUND: 404,
        ledger.LedgerErrorKind.INVALID_ARGUMENT: 400,
        ledger.LedgerErrorKind.INSUFFICIENT_STOCK: 400,
        ledger.LedgerErrorKind.UNAUTHORIZED: 401,
        ledger.LedgerErrorKind.CONFLICT: 409,
        ledger.LedgerErrorKind.INTERNAL: 500,
    }
    for kind, code in cases.items():
        with pytest.raises(HTTPException) as excinfo:
            ledger.raise_for_failure(ledger.LedgerFailure(kind, "boom"))
        assert excinfo.value.status_code == code


def test_check_balance_detects_drift(db_session):
    user = _create_user(db_session)
    item = _create_item(db_session)
    assert _apply(db_session, item, user, IN, 4).ok

    item.stock = 9
    db_session.commit()

    check = ledger.check_balance(db_session, item.id)
    assert check.stock == 9
    assert check.ledger_balance == 4
    assert not check.consistent


def test_balance_may_not_pass_column_range(db_session):
    user = _create_user(db_session)
    item = _create_item(db_session, stock=inventory_models.MAX_QUANTITY - 1)

    result = _apply(db_session, item, user, IN, 2)
    assert result.error.kind == ledger.LedgerErrorKind.INVALID_ARGUMENT
    assert _entries(db_session, item.id) == []

    assert _apply(db_session, item, user, IN, 1).ok
    db_session.refresh(item)
    assert item.stock == inventory_models.MAX_QUANTITY


# ---------------------------------------------------------------------------
# lock contention
# ---------------------------------------------------------------------------


class _PgError(Exception):
    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode


def _database_locked():
    return OperationalError("UPDATE inventory_items", {}, sqlite3.OperationalError("database is locked"))


def _failing_first_calls(monkeypatch, failures, error=_database_locked):
    calls = {"count": 0}
    real_post = ledger.post_movement

    def post(db, **kwargs):
        calls["count"] += 1
        if calls["count"] <= failures:
            raise error()
        return real_post(db, **kwargs)

    monkeypatch.setattr(ledger, "post_movement", post)
    return calls


def test_transient_contention_is_retried(db_session, monkeypatch):
    monkeypatch.setattr(ledger, "CONFLICT_RETRIES", 3)
    user = _create_user(db_session)
    item = _create_item(db_session)
    calls = _failing_first_calls(monkeypatch, failures=2)

    result = _apply(db_session, item, user, IN, 5)

    assert result.ok
    assert calls["count"] == 3
    db_session.refresh(item)
    assert item.stock == 5
    assert len(_entries(db_session, item.id)) == 1


def test_persistent_contention_reports_conflict(db_session, monkeypatch):
    monkeypatch.setattr(ledger, "CONFLICT_RETRIES", 3)
    user = _create_user(db_session)
    item = _create_item(db_session, stock=0)
    calls = _failing_first_calls(monkeypatch, failures=10)

    result = _apply(db_session, item, user, IN, 5)

    assert result.error.kind == ledger.LedgerErrorKind.CONFLICT
    assert result.error.http_status == 409
    assert calls["count"] == 4
    db_session.refresh(item)
    assert item.stock == 0
    assert _entries(db_session, item.id) == []


def test_other_operational_errors_are_internal_and_not_retried(db_session, monkeypatch):
    user = _create_user(db_session)
    item = _create_item(db_session)
    calls = _failing_first_calls(
        monkeypatch,
        failures=1,
        error=lambda: OperationalError("SELECT", {}, sqlite3.OperationalError("disk I/O error")),
    )

    result = _apply(db_session, item, user, IN, 5)

    assert result.error.kind == ledger.LedgerErrorKind.INTERNAL
    assert calls["count"] == 1


@pytest.mark.parametrize(
    ("pgcode", "message", "expected"),
    [
        ("55P03", "canceling statement due to lock timeout", True),
        ("40001", "could not serialize access due to concurrent update", True),
        ("40P01", "deadlock detected", True),
        ("23505", "duplicate key value violates unique constraint", False),
        (None, "database is locked", True),
        (None, "no such column: stock", False),
    ],
)
def test_is_contention_classification(pgcode, message, expected):
    exc = OperationalError("UPDATE inventory_items", {}, _PgError(message, pgcode))
    assert ledger.is_contention(exc) is expected


def test_is_contention_ignores_non_database_errors():
    assert ledger.is_contention(ValueError("database is locked")) is False


def test_composite_write_maps_contention_to_409(db_session):
    with pytest.raises(HTTPException) as excinfo:
        with ledger.ledger_transaction(db_session):
            raise _database_locked()
    assert excinfo.value.status_code == 409

    with pytest.raises(OperationalError):
        with ledger.ledger_transaction(db_session):
            raise OperationalError("SELECT", {}, sqlite3.OperationalError("disk I/O error"))
