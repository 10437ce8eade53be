"""
Cache abstraction (port).

Backends (Redis in production, local memory in tests) are plugged in
through Django's cache framework by the adapter.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional


class CachePort(ABC):
    """
    Abstract cache port.

    Cache failures must never break the operation using the cache;
    implementations log them and behave as a miss.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Get a value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, timeout: Optional[int] = None) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: JSON-compatible value
            timeout: Seconds to live (None for the backend default)
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Drop a value.

        Args:
            key: Cache key
        """
        pass
