"""
Audit app.

Append-only record of who changed what; events join the caller's
transaction.
"""

from . import models  # noqa: F401
