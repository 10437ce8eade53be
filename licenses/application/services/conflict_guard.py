"""
Conflict re-checks for licenses moving past DRAFT.

Drafts only warn each other at creation, so every step that commits a
license further (submission, activation, applying amended terms) checks
it again against the grants already holding the asset. Callers hold the
asset lock while the check and the write run.
"""
import logging
from typing import Iterable, Optional

from core.domain.exceptions import ConflictError
from core.domain.value_objects import LicenseStatus
from licenses.domain.conflicts import HELD_STATUSES, ConflictDetector, ConflictQuery, ConflictResult
from licenses.domain.license import License
from licenses.ports.license_repository import LicenseRepository

logger = logging.getLogger(__name__)


class CommittedConflictGuard:
    """Blocks a license from committing over another held grant."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        statuses: Optional[Iterable[LicenseStatus]] = None,
    ):
        self.license_repository = license_repository
        self.statuses = frozenset(statuses or HELD_STATUSES)
        self.detector = ConflictDetector(self.statuses)

    async def check(self, license: License) -> ConflictResult:
        """
        Detect collisions between the license's terms and other held grants.

        The license's own renewal parent is ignored; a renewal starts where
        its parent ends.
        """
        existing = await self.license_repository.find_overlapping(
            license.ip_asset_id,
            license.start_date,
            license.end_date,
            self.statuses,
            exclude_license_id=license.id,
        )
        if license.parent_license_id is not None:
            existing = [lic for lic in existing if lic.id != license.parent_license_id]
        query = ConflictQuery(
            ip_asset_id=license.ip_asset_id,
            start_date=license.start_date,
            end_date=license.end_date,
            license_type=license.license_type,
            scope=license.scope,
            brand_id=license.brand_id,
            rev_share_bps=license.rev_share_bps,
            exclude_license_id=license.id,
        )
        return self.detector.detect(query, existing)

    async def ensure_clear(self, license: License, message: str) -> None:
        """
        Raises:
            ConflictError: Another held grant collides with the license
        """
        result = await self.check(license)
        if result.has_conflicts:
            logger.info(
                "License %s blocked by %d conflict(s): %s",
                license.id,
                len(result.conflicts),
                ", ".join(c.key for c in result.conflicts),
            )
            raise ConflictError(message, result.conflicts)
