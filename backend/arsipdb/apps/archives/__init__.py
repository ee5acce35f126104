"""
Archives module.

Archive records with their retention period. Retention state (active,
expired, destroyed) is derived, never stored; see `retention`.
"""

from . import models  # noqa: F401
