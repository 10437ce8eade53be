"""
Idempotency key repository port (interface).
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from licenses.domain.idempotency import IdempotencyRecord


class IdempotencyRepository(ABC):
    """Storage for idempotency keys of mutating requests."""

    @abstractmethod
    async def find(self, key: str) -> Optional[IdempotencyRecord]:
        """
        Find a stored key.

        Args:
            key: Client-supplied idempotency key

        Returns:
            IdempotencyRecord or None if unknown
        """
        pass

    @abstractmethod
    async def create(self, record: IdempotencyRecord) -> bool:
        """
        Insert a new key in the processing state.

        Args:
            record: Record to insert

        Returns:
            False when another request inserted the same key first
        """
        pass

    @abstractmethod
    async def mark_processed(self, key: str, response_data: Dict[str, Any]) -> None:
        """Store the response of a finished operation."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Forget a key so the operation can be retried."""
        pass
