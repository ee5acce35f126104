# backend/arsipdb/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- User accounts and roles (ADMINISTRATOR / STAFF)
- Admin endpoints (manage users, reset passwords, user statistics)
- The current-principal endpoint (/auth/me)

Every other app attributes its records to these users.
"""

from . import models, schemas  # noqa: F401

__all__ = ["models", "schemas"]
