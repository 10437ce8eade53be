"""
Conflict handlers.

Read-only checks of a proposed grant against what already exists on an asset.
"""
import logging
from typing import Any, Dict, Optional

from core.domain.exceptions import ValidationError
from licenses.application.queries.conflict_queries import CheckConflictsQuery, GetConflictPreviewQuery
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.domain.conflicts import DETECTION_STATUSES, ConflictDetector, ConflictQuery, ConflictResult
from licenses.ports.license_repository import LicenseRepository

logger = logging.getLogger(__name__)


class CheckConflictsHandler:
    """Handler for CheckConflictsQuery."""

    def __init__(self, license_repository: LicenseRepository, detector: Optional[ConflictDetector] = None):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.detector = detector or ConflictDetector(DETECTION_STATUSES)

    async def handle(self, query: CheckConflictsQuery) -> ConflictResult:
        """
        Detect conflicts of a proposed grant.

        Conflicts against DRAFT licenses are reported but flagged so callers
        can treat them as warnings.

        Args:
            query: CheckConflictsQuery

        Returns:
            ConflictResult with deduplicated conflicts and warnings

        Raises:
            ValidationError: If the date range is invalid
        """
        try:
            conflict_query = ConflictQuery(
                ip_asset_id=query.ip_asset_id,
                start_date=query.start_date,
                end_date=query.end_date,
                license_type=query.license_type,
                scope=query.scope,
                brand_id=query.brand_id,
                rev_share_bps=query.rev_share_bps,
                exclude_license_id=query.exclude_license_id,
            )
        except ValueError as e:
            raise ValidationError(str(e))

        existing = await self.license_repository.find_overlapping(
            query.ip_asset_id,
            query.start_date,
            query.end_date,
            DETECTION_STATUSES,
            exclude_license_id=query.exclude_license_id,
        )
        result = self.detector.detect(conflict_query, existing)
        logger.debug(
            "Conflict check on asset %s: %d conflict(s) against %d license(s)",
            query.ip_asset_id,
            len(result.conflicts),
            len(existing),
        )
        return result


class GetConflictPreviewHandler:
    """Handler for GetConflictPreviewQuery."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        preview_service: Optional[ConflictPreviewService] = None,
    ):
        """Initialize handler with repositories."""
        self.preview_service = preview_service or ConflictPreviewService(license_repository)

    async def handle(self, query: GetConflictPreviewQuery) -> Dict[str, Any]:
        return await self.preview_service.get(query.ip_asset_id)
