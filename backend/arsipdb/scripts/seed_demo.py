"""
Demo data for a fresh database: one administrator, one staff member and a
handful of stationery items. Opening balances go through the ledger so the
balances are backed by StockTransaction rows.

    python -m arsipdb.scripts.seed_demo
"""

from __future__ import annotations

from arsipdb.database import WriteSessionLocal
from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.accounts import schemas as account_schemas
from arsipdb.apps.accounts import services as account_services
from arsipdb.apps.inventory import models as inventory_models
from arsipdb.apps.inventory import schemas as inventory_schemas
from arsipdb.apps.inventory import services as inventory_services

DEMO_USERS = [
    ("admin", "Administrator", "admin@arsip.go.id", account_models.UserRole.ADMINISTRATOR),
    ("staff", "Staf Gudang", "staff@arsip.go.id", account_models.UserRole.STAFF),
]
DEMO_PASSWORD = "password123"

# name, category, unit, opening stock, minimum stock
DEMO_ITEMS = [
    ("Kertas HVS A4", "Alat Tulis", "rim", 25, 10),
    ("Map Arsip", "Perlengkapan Arsip", "pcs", 120, 50),
    ("Tinta Printer Hitam", "Perlengkapan Kantor", "botol", 4, 5),
    ("Boks Arsip", "Perlengkapan Arsip", "pcs", 40, 20),
    ("Pulpen Hitam", "Alat Tulis", "pcs", 0, 24),
]


def _get_or_create_user(db, username, name, email, role) -> account_models.User:
    user = db.query(account_models.User).filter(account_models.User.username == username).first()
    if user:
        return user
    return account_services.create_user(
        db,
        account_schemas.UserCreate(
            username=username,
            name=name,
            email=email,
            role=role,
            password=DEMO_PASSWORD,
        ),
    )


def _get_or_create_item(db, admin, name, category, unit, stock, min_stock) -> inventory_models.InventoryItem:
    item = db.query(inventory_models.InventoryItem).filter(inventory_models.InventoryItem.name == name).first()
    if item:
        return item
    return inventory_services.create_item(
        db,
        payload=inventory_schemas.InventoryItemCreate(
            name=name,
            category=category,
            unit=unit,
            stock=stock,
            min_stock=min_stock,
        ),
        actor_user_id=admin.id,
    )


def main() -> None:
    db = WriteSessionLocal()
    try:
        users = [_get_or_create_user(db, *row) for row in DEMO_USERS]
        admin = users[0]
        for row in DEMO_ITEMS:
            item = _get_or_create_item(db, admin, *row)
            print(f"  {item.name:<24} stock={item.stock:<4} min={item.min_stock}")
        print("OK: demo users", ", ".join(u.username for u in users), "password =", DEMO_PASSWORD)
    finally:
        db.close()


if __name__ == "__main__":
    main()
