"""
Query Cache — Storage Module

Key/value storage boundary with pluggable backends.

- factory.py: creation and registry of backend instances
- interface.py: abstract interface all backends implement
- backends/: memory (always available) and redis (optional)

Usage:
    from query_cache.storage import create_storage

    storage = create_storage()
    await storage.set("key", b"payload", ttl=3600)
    payload = await storage.get("key")
"""

from .factory import (
    close_all_storages,
    create_storage,
    get_storage,
    list_storage_instances,
    reset_storage_factory,
)
from .interface import StorageInterface

__all__ = [
    "create_storage",
    "get_storage",
    "close_all_storages",
    "list_storage_instances",
    "reset_storage_factory",
    "StorageInterface",
]
