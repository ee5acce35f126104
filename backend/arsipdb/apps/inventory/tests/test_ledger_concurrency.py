from __future__ import annotations

import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from arsipdb.database import Base
from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.inventory import ledger
from arsipdb.apps.inventory import models as inventory_models

WORKERS = 12
OPENING = 8


@pytest.fixture()
def file_session_factory(tmp_path):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.User.__table__,
            inventory_models.InventoryItem.__table__,
            inventory_models.StockTransaction.__table__,
        ],
    )
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    try:
        yield factory
    finally:
        engine.dispose()


def _seed(factory):
    session = factory()
    try:
        user = account_models.User(
            username="petugas",
            name="Petugas Gudang",
            email="petugas@example.com",
            hashed_password="hash",
        )
        item = inventory_models.InventoryItem(name="Map Arsip", category="Arsip", unit="pcs", stock=0)
        session.add_all([user, item])
        session.commit()
        result = ledger.apply_movement(
            session, item_id=item.id, direction="IN", quantity=OPENING, actor_user_id=user.id
        )
        assert result.ok
        return user.id, item.id
    finally:
        session.close()


def test_concurrent_draws_never_overdraw(file_session_factory):
    user_id, item_id = _seed(file_session_factory)
    outcomes = []
    lock = threading.Lock()
    barrier = threading.Barrier(WORKERS)

    def draw():
        session = file_session_factory()
        try:
            barrier.wait()
            result = ledger.apply_movement(
                session, item_id=item_id, direction="OUT", quantity=1, actor_user_id=user_id
            )
            with lock:
                outcomes.append(result.error.kind if result.error else "ok")
        finally:
            session.close()

    threads = [threading.Thread(target=draw) for _ in range(WORKERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    successes = outcomes.count("ok")
    failures = [kind for kind in outcomes if kind != "ok"]
    assert len(outcomes) == WORKERS
    assert successes <= OPENING
    assert set(failures) <= {
        ledger.LedgerErrorKind.INSUFFICIENT_STOCK,
        ledger.LedgerErrorKind.CONFLICT,
    }

    session = file_session_factory()
    try:
        check = ledger.check_balance(session, item_id)
        assert check.stock == OPENING - successes
        assert check.stock >= 0
        assert check.consistent
    finally:
        session.close()
