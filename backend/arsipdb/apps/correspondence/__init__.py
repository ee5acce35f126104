"""
Correspondence module: register of incoming and outgoing letters.
"""

from . import models  # noqa: F401
