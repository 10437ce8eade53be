"""
Status history repository port (interface).
"""
from abc import ABC, abstractmethod
from typing import List
import uuid

from licenses.domain.status_history import StatusHistoryEntry


class StatusHistoryRepository(ABC):
    """Append-only store of license status transitions."""

    @abstractmethod
    async def append(self, entry: StatusHistoryEntry) -> StatusHistoryEntry:
        """
        Append a history entry. Entries are never updated or deleted.

        Args:
            entry: Entry to store

        Returns:
            Stored entry
        """
        pass

    @abstractmethod
    async def find_by_license(self, license_id: uuid.UUID) -> List[StatusHistoryEntry]:
        """
        Find a license's history, newest first.

        Args:
            license_id: License UUID

        Returns:
            List of StatusHistoryEntry
        """
        pass
