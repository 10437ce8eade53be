"""
Actor access rules.

Resolves the relationships permission checks depend on: brand
ownership of a license and creator ownership of an asset.
"""
import uuid
from typing import List, Optional

from assets.ports.asset_repository import AssetRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.clock import utc_now
from core.domain.exceptions import LicensePermissionError
from core.domain.value_objects import Actor, Role
from licenses.domain.license import License


class LicenseAccess:
    """Answers "may this actor act on this license" questions."""

    def __init__(self, brand_repository: BrandRepository, asset_repository: AssetRepository):
        self.brand_repository = brand_repository
        self.asset_repository = asset_repository

    async def brand_owner_id(self, brand_id: uuid.UUID) -> Optional[str]:
        brand = await self.brand_repository.find_by_id(brand_id)
        return brand.owner_user_id if brand else None

    async def is_brand_owner(self, license: License, actor: Actor) -> bool:
        if actor.role != Role.BRAND:
            return False
        return await self.brand_owner_id(license.brand_id) == actor.user_id

    async def owner_user_ids(self, asset_id: uuid.UUID) -> List[str]:
        """User ids of the creators holding a current ownership of the asset."""
        now = utc_now()
        ownerships = await self.asset_repository.find_ownerships(asset_id)
        return list(
            dict.fromkeys(
                o.creator.user_id
                for o in ownerships
                if o.is_current(now) and not o.creator.is_deleted
            )
        )

    async def is_asset_owner(self, asset_id: uuid.UUID, actor: Actor) -> bool:
        if actor.role != Role.CREATOR:
            return False
        return actor.user_id in await self.owner_user_ids(asset_id)

    async def is_party(self, license: License, actor: Actor) -> bool:
        """Brand owner, asset owner, admin or the system."""
        if actor.role in (Role.ADMIN, Role.SYSTEM):
            return True
        if actor.role == Role.BRAND:
            return await self.is_brand_owner(license, actor)
        if actor.role == Role.CREATOR:
            return await self.is_asset_owner(license.ip_asset_id, actor)
        raise ValueError(f"Unhandled role: {actor.role}")

    async def require_party(self, license: License, actor: Actor) -> None:
        if not await self.is_party(license, actor):
            raise LicensePermissionError("You do not have access to this license")
