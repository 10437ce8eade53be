"""
IP asset repository port (interface).

Assets and their ownership records are managed outside the licensing
core; this port only reads them (and takes the per-asset lock).
"""
import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

from assets.domain.asset import IpAsset, Ownership


class AssetRepository(ABC):
    """Read access to assets and their ownership records."""

    @abstractmethod
    async def save(self, asset: IpAsset) -> IpAsset:
        """
        Save an asset.

        Args:
            asset: Asset entity to save

        Returns:
            Saved asset entity
        """
        pass

    @abstractmethod
    async def find_by_id(self, asset_id: uuid.UUID) -> Optional[IpAsset]:
        """
        Find an asset by ID, including deleted ones.

        Args:
            asset_id: Asset UUID

        Returns:
            IpAsset or None if not found
        """
        pass

    @abstractmethod
    async def find_ownerships(self, asset_id: uuid.UUID) -> List[Ownership]:
        """
        Find every ownership record of an asset, with its creator.

        Args:
            asset_id: Asset UUID

        Returns:
            List of Ownership entities
        """
        pass

    @abstractmethod
    async def lock(self, asset_id: uuid.UUID) -> None:
        """
        Lock the asset row until the surrounding transaction ends.

        Serialises conflict detection and creation on one asset.
        """
        pass

    @abstractmethod
    async def find_asset_ids_owned_by(self, user_id: str) -> List[uuid.UUID]:
        """Assets on which the user's creator account holds an ownership."""
        pass
