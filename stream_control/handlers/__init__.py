"""
HTTP handlers for stream control.

Importing this package registers every route on the shared route table.
"""

from . import info
from . import devices
from . import capture
from . import tweet
from . import overlay

__all__ = [
    "info",
    "devices",
    "capture",
    "tweet",
    "overlay",
]
