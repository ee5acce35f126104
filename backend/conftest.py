from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"

from arsipdb.database import Base  # noqa: E402
from arsipdb.apps.accounts import models as account_models  # noqa: E402
from arsipdb.apps.audit import models as audit_models  # noqa: E402
from arsipdb.apps.inventory import models as inventory_models  # noqa: E402
from arsipdb.apps.purchasing import models as purchasing_models  # noqa: E402
from arsipdb.apps.distribution import models as distribution_models  # noqa: E402
from arsipdb.apps.correspondence import models as correspondence_models  # noqa: E402
from arsipdb.apps.archives import models as archives_models  # noqa: E402

ALL_TABLES = [
    account_models.User.__table__,
    audit_models.AuditEvent.__table__,
    inventory_models.InventoryItem.__table__,
    inventory_models.StockTransaction.__table__,
    purchasing_models.PurchaseRequest.__table__,
    purchasing_models.PurchaseRequestItem.__table__,
    purchasing_models.Reception.__table__,
    distribution_models.Distribution.__table__,
    distribution_models.DistributionItem.__table__,
    correspondence_models.Letter.__table__,
    archives_models.Archive.__table__,
]


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine, tables=ALL_TABLES)
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
