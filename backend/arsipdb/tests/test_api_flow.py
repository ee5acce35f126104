from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from arsipdb.database import Base, get_db, get_read_db
from arsipdb.main import app
from arsipdb.apps.accounts import models as account_models
from arsipdb.security import get_current_active_user


@pytest.fixture()
def api():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    seed = sessionmaker(bind=engine, expire_on_commit=False)()
    users = {
        "admin": account_models.User(
            username="admin",
            name="Administrator",
            email="admin@arsip.go.id",
            hashed_password="hash",
            role=account_models.UserRole.ADMINISTRATOR,
        ),
        "staff": account_models.User(
            username="staf",
            name="Staf Gudang",
            email="staf@arsip.go.id",
            hashed_password="hash",
        ),
    }
    seed.add_all(users.values())
    seed.commit()
    seed.close()

    def _session():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    acting = {"user": users["admin"]}
    app.dependency_overrides[get_db] = _session
    app.dependency_overrides[get_read_db] = _session
    app.dependency_overrides[get_current_active_user] = lambda: acting["user"]

    def act_as(name: str) -> None:
        acting["user"] = users[name]

    try:
        with TestClient(app) as client:
            yield client, act_as
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def test_health():
    client = TestClient(app)
    assert client.get("/health").json() == {"status": "ok"}


def test_stock_scenario_over_http(api):
    client, _ = api

    response = client.post(
        "/inventory",
        json={"name": "Kertas HVS A4", "category": "Alat Tulis", "unit": "rim", "stock": 5, "min_stock": 10},
    )
    assert response.status_code == 201
    item = response.json()
    assert item["stock"] == 5
    assert item["status"] == "low"

    response = client.post(
        "/stock-transactions",
        json={"item_id": item["id"], "type": "IN", "quantity": 20, "description": "Restock"},
    )
    assert response.status_code == 201
    assert response.json()["user"]["name"] == "Administrator"

    response = client.post("/stock-transactions", json={"item_id": item["id"], "type": "OUT", "quantity": 30})
    assert response.status_code == 400

    response = client.post("/stock-transactions", json={"item_id": item["id"], "type": "OUT", "quantity": 25})
    assert response.status_code == 201

    detail = client.get(f"/inventory/{item['id']}").json()
    assert detail["stock"] == 0
    assert detail["status"] == "critical"
    assert len(detail["recent_transactions"]) == 3

    check = client.get(f"/inventory/{item['id']}/ledger-check").json()
    assert check["consistent"] is True

    response = client.delete(f"/inventory/{item['id']}")
    assert response.status_code == 409


def test_invalid_movement_and_unknown_item(api):
    client, _ = api
    response = client.post("/stock-transactions", json={"item_id": "missing", "type": "IN", "quantity": 1})
    assert response.status_code == 404

    item = client.post("/inventory", json={"name": "Map", "category": "Arsip", "unit": "pcs"}).json()
    response = client.post("/stock-transactions", json={"item_id": item["id"], "type": "SIDEWAYS", "quantity": 1})
    assert response.status_code == 400
    response = client.post("/stock-transactions", json={"item_id": item["id"], "type": "IN", "quantity": 0})
    assert response.status_code == 400


def test_admin_only_routes_reject_staff(api):
    client, act_as = api
    act_as("staff")

    assert client.get("/users").status_code == 403
    assert client.get("/audit/").status_code == 403
    assert client.get("/dashboard/stats").status_code == 200


def test_distribution_flow_over_http(api):
    client, _ = api
    item = client.post(
        "/inventory",
        json={"name": "Map Arsip", "category": "Arsip", "unit": "pcs", "stock": 10},
    ).json()

    response = client.post(
        "/distribution",
        json={
            "staff_name": "Siti Aminah",
            "department": "Tata Usaha",
            "purpose": "Penataan arsip",
            "items": [{"item_name": "Map Arsip", "quantity": 4, "unit": "pcs", "item_id": item["id"]}],
        },
    )
    assert response.status_code == 201
    distribution = response.json()
    assert distribution["note_number"] == "DST-001"
    assert distribution["total_quantity"] == 4

    assert client.get(f"/inventory/{item['id']}").json()["stock"] == 6

    response = client.post(
        "/distribution",
        json={
            "staff_name": "Siti Aminah",
            "department": "Tata Usaha",
            "purpose": "Terlalu banyak",
            "items": [{"item_name": "Map Arsip", "quantity": 7, "unit": "pcs", "item_id": item["id"]}],
        },
    )
    assert response.status_code == 400
    page = client.get("/distribution").json()
    assert page["pagination"]["total"] == 1

    assert client.delete(f"/distribution/{distribution['id']}").status_code == 204
    assert client.get(f"/inventory/{item['id']}").json()["stock"] == 10


def test_database_health_check(api):
    client, _ = api
    assert client.get("/health/db").json() == {"status": "ok", "database": "sqlite"}


def test_own_password_change(api):
    client, act_as = api
    act_as("staff")
    me = client.get("/auth/me").json()
    assert me["username"] == "staf"

    act_as("admin")
    assert client.put(f"/users/{me['id']}/password", json={"password": "Awal12345"}).status_code == 200

    act_as("staff")
    wrong = client.put("/auth/me/password", json={"current_password": "salah", "password": "Baru12345"})
    assert wrong.status_code == 400
    response = client.put("/auth/me/password", json={"current_password": "Awal12345", "password": "Baru12345"})
    assert response.status_code == 200
    assert response.json()["id"] == me["id"]


@pytest.mark.parametrize("quantity", [2.5, "4", 4.0, 2**31, 2**63])
def test_movement_quantity_is_judged_by_the_ledger(api, quantity):
    client, _ = api
    item = client.post("/inventory", json={"name": "Map", "category": "Arsip", "unit": "pcs", "stock": 10}).json()

    response = client.post("/stock-transactions", json={"item_id": item["id"], "type": "OUT", "quantity": quantity})

    assert response.status_code == 400
    assert client.get(f"/inventory/{item['id']}").json()["stock"] == 10


def test_opening_stock_beyond_column_range_is_rejected(api):
    client, _ = api
    response = client.post(
        "/inventory",
        json={"name": "Map", "category": "Arsip", "unit": "pcs", "stock": 2**31},
    )
    assert response.status_code == 422
