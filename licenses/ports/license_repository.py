"""
License repository port (interface).

This defines the contract for license persistence operations.
Implementations are in the infrastructure layer.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional
import uuid

from core.domain.value_objects import LicenseStatus
from licenses.domain.license import License


class LicenseRepository(ABC):
    """
    Abstract repository for License entities.

    This is a port in hexagonal architecture - it defines
    what operations are available, not how they're implemented.
    Finder methods skip logically deleted licenses unless stated otherwise.
    """

    @abstractmethod
    async def save(self, license: License) -> License:
        """
        Save a license entity.

        Args:
            license: License entity to save

        Returns:
            Saved license entity
        """
        pass

    @abstractmethod
    async def find_by_id(
        self, license_id: uuid.UUID, for_update: bool = False
    ) -> Optional[License]:
        """
        Find a license by ID, including deleted ones.

        Args:
            license_id: License UUID
            for_update: Lock the row until the surrounding transaction ends

        Returns:
            License entity or None if not found
        """
        pass

    @abstractmethod
    async def find_overlapping(
        self,
        ip_asset_id: uuid.UUID,
        start_date: datetime,
        end_date: datetime,
        statuses: Iterable[LicenseStatus],
        exclude_license_id: Optional[uuid.UUID] = None,
    ) -> List[License]:
        """
        Find licenses on an asset whose date range intersects [start, end].

        Args:
            ip_asset_id: Asset UUID
            start_date: Range start
            end_date: Range end
            statuses: Statuses to include
            exclude_license_id: License to leave out (the one being checked)

        Returns:
            List of License entities
        """
        pass

    @abstractmethod
    async def find_by_filters(
        self,
        brand_id: Optional[uuid.UUID] = None,
        ip_asset_id: Optional[uuid.UUID] = None,
        statuses: Optional[Iterable[LicenseStatus]] = None,
    ) -> List[License]:
        """
        Find licenses matching every given filter, newest first.

        Args:
            brand_id: Licensee brand
            ip_asset_id: Licensed asset
            statuses: Statuses to include

        Returns:
            List of License entities
        """
        pass

    @abstractmethod
    async def find_children(
        self,
        parent_license_id: uuid.UUID,
        statuses: Optional[Iterable[LicenseStatus]] = None,
    ) -> List[License]:
        """
        Find renewal licenses created from a parent license.

        Args:
            parent_license_id: Parent license UUID
            statuses: Statuses to include (all when None)

        Returns:
            List of License entities
        """
        pass

    @abstractmethod
    async def find_by_status(
        self,
        statuses: Iterable[LicenseStatus],
        end_date_from: Optional[datetime] = None,
        end_date_to: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        auto_renew: Optional[bool] = None,
    ) -> List[License]:
        """
        Find licenses for sweeps.

        Args:
            statuses: Statuses to include
            end_date_from: Inclusive lower bound on end date
            end_date_to: Exclusive upper bound on end date
            created_before: Only licenses created before this moment
            auto_renew: Filter on the auto-renew flag

        Returns:
            List of License entities
        """
        pass

    @abstractmethod
    async def find_market_comparables(
        self,
        ip_asset_id: uuid.UUID,
        statuses: Iterable[LicenseStatus],
        created_after: datetime,
        exclude_license_id: uuid.UUID,
    ) -> List[License]:
        """
        Find recent licenses on the same asset used for market pricing.

        Args:
            ip_asset_id: Asset UUID
            statuses: Statuses to include
            created_after: Only licenses created after this moment
            exclude_license_id: The license being priced

        Returns:
            List of License entities
        """
        pass

    @abstractmethod
    async def sum_fees(self, brand_id: uuid.UUID, statuses: Iterable[LicenseStatus]) -> int:
        """
        Sum the fees of a brand's licenses in the given statuses.

        Args:
            brand_id: Brand UUID
            statuses: Statuses to include

        Returns:
            Total fee in cents
        """
        pass

    @abstractmethod
    async def status_distribution(
        self, brand_id: Optional[uuid.UUID] = None
    ) -> Dict[str, int]:
        """
        Count licenses per status.

        Args:
            brand_id: Restrict to one brand

        Returns:
            Mapping of status value to count
        """
        pass
