# backend/arsipdb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- The package exposes a clear surface.

The actual model classes are kept in arsipdb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models              # users / roles
from .apps.audit import models as audit_models                    # audit trail
from .apps.inventory import models as inventory_models            # items + stock ledger
from .apps.purchasing import models as purchasing_models          # purchase requests + receptions
from .apps.distribution import models as distribution_models      # hand-outs to staff
from .apps.correspondence import models as correspondence_models  # letter register
from .apps.archives import models as archives_models              # archive records + retention

__all__ = [
    "accounts_models",
    "audit_models",
    "inventory_models",
    "purchasing_models",
    "distribution_models",
    "correspondence_models",
    "archives_models",
]
