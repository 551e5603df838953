"""
Query Cache — Storage Interface

Defines the abstract key/value boundary that all storage backends must
implement. Payloads are opaque bytes; the backend owns expiration.
"""

from abc import ABC, abstractmethod
from typing import Any


class StorageInterface(ABC):
    """
    Abstract base class for storage backends.

    Backends raise StorageError when the underlying store fails. A key that
    is simply absent or expired is not an error: get() returns None.
    """

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """
        Retrieve a payload from storage.

        Args:
            key: Cache key

        Returns:
            Stored payload if found and not expired, None otherwise

        Raises:
            StorageError: If the backend could not be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: float) -> None:
        """
        Store a payload with an expiration.

        Args:
            key: Cache key
            value: Encoded payload
            ttl: Time-to-live in seconds (must be positive)

        Raises:
            StorageError: If the backend could not be written
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a key from storage.

        Returns:
            True if key was deleted, False if key didn't exist
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a key exists and is not expired."""
        pass

    @abstractmethod
    async def clear(self) -> bool:
        """
        Remove all entries owned by this backend.

        Returns:
            True if storage was cleared successfully
        """
        pass

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """Get backend statistics (hits, misses, size, etc.)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close the backend and release resources.

        Should be called during graceful shutdown.
        """
        pass
