"""
Query Cache — Storage Backends

Redis backend is lazy-loaded via factory.py to avoid a hard dependency.
"""

from .memory import MemoryStorage

__all__ = [
    "MemoryStorage",
]
