"""
Extension repository port (interface).
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional
import uuid

from licenses.domain.extension import Extension


class ExtensionRepository(ABC):
    """Persistence for license extension requests."""

    @abstractmethod
    async def save(self, extension: Extension) -> Extension:
        """
        Save an extension request.

        Args:
            extension: Extension to save

        Returns:
            Saved extension
        """
        pass

    @abstractmethod
    async def find_by_id(
        self, extension_id: uuid.UUID, for_update: bool = False
    ) -> Optional[Extension]:
        """
        Find an extension request by ID.

        Args:
            extension_id: Extension UUID
            for_update: Lock the row until the surrounding transaction ends

        Returns:
            Extension or None if not found
        """
        pass

    @abstractmethod
    async def find_by_licenses(
        self, license_ids: Iterable[uuid.UUID], pending_only: bool = False
    ) -> List[Extension]:
        """Extensions requested on any of the licenses, newest first."""
        pass

    @abstractmethod
    async def find_all(self) -> List[Extension]:
        """Every extension request, newest first."""
        pass

    @abstractmethod
    async def find_overdue(self, now: datetime) -> List[Extension]:
        """PENDING extensions whose respond-by date has passed."""
        pass
