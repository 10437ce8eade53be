"""
Conflict preview service.

Caches the per-asset conflict preview; any change to a license on the
asset invalidates it.
"""
import logging
import uuid
from typing import Any, Dict, Optional

from core.domain.clock import utc_now
from core.infrastructure.cache import CachePort
from core.infrastructure.cache_adapters import cache_adapter
from licenses.domain.conflicts import COMMITTED_STATUSES, build_conflict_preview
from licenses.domain.policy import DEFAULT_POLICY
from licenses.ports.license_repository import LicenseRepository

logger = logging.getLogger(__name__)


def preview_cache_key(ip_asset_id: uuid.UUID) -> str:
    return f"preview:{ip_asset_id}"


class ConflictPreviewService:
    """Builds and caches conflict previews."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        cache: Optional[CachePort] = None,
        ttl_seconds: int = DEFAULT_POLICY.conflict_preview_ttl_seconds,
    ):
        self.license_repository = license_repository
        self.cache = cache or cache_adapter
        self.ttl_seconds = ttl_seconds

    async def get(self, ip_asset_id: uuid.UUID) -> Dict[str, Any]:
        """
        Preview of the committed grants on an asset.

        Args:
            ip_asset_id: Asset UUID

        Returns:
            Preview as a JSON-compatible dict
        """
        key = preview_cache_key(ip_asset_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        licenses = await self.license_repository.find_by_filters(
            ip_asset_id=ip_asset_id, statuses=COMMITTED_STATUSES
        )
        preview = build_conflict_preview(ip_asset_id, licenses, utc_now()).to_dict()
        await self.cache.set(key, preview, timeout=self.ttl_seconds)
        return preview

    async def invalidate(self, ip_asset_id: uuid.UUID) -> None:
        await self.cache.delete(preview_cache_key(ip_asset_id))
        logger.debug("Invalidated conflict preview for asset %s", ip_asset_id)
