"""
Distribution module: supplies handed out to staff (notes DST-NNN).
"""

from . import models  # noqa: F401
