"""
Usage metrics repository port (interface).
"""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime

from assets.domain.usage import UsageSummary


class UsageMetricsRepository(ABC):
    """Read access to daily usage metrics of an asset."""

    @abstractmethod
    async def summarize(self, asset_id: uuid.UUID, since: datetime) -> UsageSummary:
        """
        Aggregate an asset's metrics recorded on or after a date.

        Args:
            asset_id: Asset UUID
            since: Window start

        Returns:
            UsageSummary (empty when nothing was recorded)
        """
        pass
