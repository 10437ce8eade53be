"""
Amendment repository port (interface).
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
import uuid

from licenses.domain.amendment import Amendment


class AmendmentRepository(ABC):
    """Persistence for amendments together with their approval records."""

    @abstractmethod
    async def save(self, amendment: Amendment) -> Amendment:
        """
        Save an amendment and all of its approval records.

        Args:
            amendment: Amendment to save

        Returns:
            Saved amendment
        """
        pass

    @abstractmethod
    async def find_by_id(
        self, amendment_id: uuid.UUID, for_update: bool = False
    ) -> Optional[Amendment]:
        """
        Find an amendment by ID.

        Args:
            amendment_id: Amendment UUID
            for_update: Lock the amendment until the surrounding transaction ends

        Returns:
            Amendment or None if not found
        """
        pass

    @abstractmethod
    async def find_by_license(self, license_id: uuid.UUID) -> List[Amendment]:
        """Amendments of a license, highest amendment number first."""
        pass

    @abstractmethod
    async def find_pending_for_approver(self, approver_id: str) -> List[Amendment]:
        """PROPOSED amendments where the user still has a pending approval."""
        pass

    @abstractmethod
    async def find_overdue(self, now: datetime) -> List[Amendment]:
        """PROPOSED amendments whose approval deadline has passed."""
        pass
