"""
Purchasing module.

Purchase requests (PR-YYYY-MM-NNN) with their review flow, and receptions
of delivered goods, which post stock through the inventory ledger.
"""

from . import models  # noqa: F401
