"""
Inventory module.

Handles the item catalogue and the stock ledger. Every balance change is a
StockTransaction posted through `ledger`.
"""

from . import models  # noqa: F401
