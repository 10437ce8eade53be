"""
Read-side handlers.

Every query checks that the actor may see what it asks for; none of them
writes.
"""
import logging
import uuid
from typing import Dict, List, Optional

from assets.ports.asset_repository import AssetRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.exceptions import BrandNotFoundError, LicensePermissionError, ValidationError
from core.domain.value_objects import Actor, Role
from licenses.application.dto.license_dto import (
    AmendmentDTO,
    AmendmentHistoryItemDTO,
    ExtensionAnalyticsDTO,
    ExtensionDTO,
    LicenseDTO,
    StatusHistoryDTO,
)
from licenses.application.queries.license_queries import (
    GetLicenseQuery,
    GetStatusDistributionQuery,
    GetStatusHistoryQuery,
    ListLicensesQuery,
)
from licenses.application.queries.workflow_queries import (
    GetAmendmentsQuery,
    GetExtensionAnalyticsQuery,
    GetExtensionsQuery,
    GetPendingAmendmentsQuery,
    GetPendingExtensionsQuery,
)
from licenses.application.services.access import LicenseAccess
from licenses.application.services.lookup import load_license
from licenses.domain.amendment import AmendmentStatus
from licenses.domain.extension import ExtensionStatus
from licenses.domain.license import License
from licenses.ports.amendment_repository import AmendmentRepository
from licenses.ports.extension_repository import ExtensionRepository
from licenses.ports.license_repository import LicenseRepository
from licenses.ports.status_history_repository import StatusHistoryRepository

logger = logging.getLogger(__name__)


class _QueryHandler:
    def __init__(
        self,
        license_repository: LicenseRepository,
        brand_repository: BrandRepository,
        asset_repository: AssetRepository,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.brand_repository = brand_repository
        self.asset_repository = asset_repository
        self.access = LicenseAccess(brand_repository, asset_repository)

    async def visible_license(self, license_id: uuid.UUID, actor: Actor) -> License:
        license = await load_license(self.license_repository, license_id)
        await self.access.require_party(license, actor)
        return license

    async def require_brand_owner(self, brand_id: uuid.UUID, actor: Actor) -> None:
        if actor.role in (Role.ADMIN, Role.SYSTEM):
            return
        brand = await self.brand_repository.find_by_id(brand_id)
        if brand is None or brand.is_deleted:
            raise BrandNotFoundError()
        if actor.role != Role.BRAND or brand.owner_user_id != actor.user_id:
            raise LicensePermissionError("You do not have access to this brand")


class GetLicenseHandler(_QueryHandler):
    """Handler for GetLicenseQuery."""

    async def handle(self, query: GetLicenseQuery) -> LicenseDTO:
        """
        Raises:
            LicenseNotFoundError: If license not found
            LicensePermissionError: Actor is not a party to the license
        """
        return LicenseDTO.from_entity(await self.visible_license(query.license_id, query.actor))


class ListLicensesHandler(_QueryHandler):
    """Handler for ListLicensesQuery."""

    async def handle(self, query: ListLicensesQuery) -> List[LicenseDTO]:
        """
        List licenses matching the filters, newest first.

        Brands must filter on a brand they own. Creators see licenses on the
        assets they own, narrowed to ``ip_asset_id`` when given.

        Returns:
            List of LicenseDTO
        """
        actor = query.actor
        statuses = [query.status] if query.status else None
        if actor.role in (Role.ADMIN, Role.SYSTEM):
            licenses = await self.license_repository.find_by_filters(
                brand_id=query.brand_id, ip_asset_id=query.ip_asset_id, statuses=statuses
            )
        elif actor.role == Role.BRAND:
            if query.brand_id is None:
                raise ValidationError("brand_id is required")
            await self.require_brand_owner(query.brand_id, actor)
            licenses = await self.license_repository.find_by_filters(
                brand_id=query.brand_id, ip_asset_id=query.ip_asset_id, statuses=statuses
            )
        elif actor.role == Role.CREATOR:
            owned = await self.asset_repository.find_asset_ids_owned_by(actor.user_id)
            if query.ip_asset_id is not None:
                if query.ip_asset_id not in owned:
                    raise LicensePermissionError("You do not own this asset")
                owned = [query.ip_asset_id]
            licenses = []
            for asset_id in owned:
                licenses += await self.license_repository.find_by_filters(
                    brand_id=query.brand_id, ip_asset_id=asset_id, statuses=statuses
                )
            licenses.sort(key=lambda license: license.created_at, reverse=True)
        else:
            raise ValueError(f"Unhandled role: {actor.role}")
        return [LicenseDTO.from_entity(license) for license in licenses]


class GetStatusHistoryHandler(_QueryHandler):
    """Handler for GetStatusHistoryQuery."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        history_repository: StatusHistoryRepository,
        brand_repository: BrandRepository,
        asset_repository: AssetRepository,
    ):
        """Initialize handler with repositories."""
        super().__init__(license_repository, brand_repository, asset_repository)
        self.history_repository = history_repository

    async def handle(self, query: GetStatusHistoryQuery) -> List[StatusHistoryDTO]:
        """Status history of a license, newest first."""
        license = await self.visible_license(query.license_id, query.actor)
        entries = await self.history_repository.find_by_license(license.id)
        return [StatusHistoryDTO.from_entity(entry) for entry in entries]


class GetStatusDistributionHandler(_QueryHandler):
    """Handler for GetStatusDistributionQuery."""

    async def handle(self, query: GetStatusDistributionQuery) -> Dict[str, int]:
        if query.brand_id is None:
            if not query.actor.is_admin:
                raise LicensePermissionError("Only admins can see the platform-wide distribution")
        else:
            await self.require_brand_owner(query.brand_id, query.actor)
        return await self.license_repository.status_distribution(brand_id=query.brand_id)


class _AmendmentQueryHandler(_QueryHandler):
    def __init__(
        self,
        license_repository: LicenseRepository,
        amendment_repository: AmendmentRepository,
        brand_repository: BrandRepository,
        asset_repository: AssetRepository,
    ):
        """Initialize handler with repositories."""
        super().__init__(license_repository, brand_repository, asset_repository)
        self.amendment_repository = amendment_repository


class GetAmendmentsHandler(_AmendmentQueryHandler):
    """Handler for GetAmendmentsQuery."""

    async def handle(self, query: GetAmendmentsQuery) -> List[AmendmentDTO]:
        """Amendments of a license, highest number first."""
        license = await self.visible_license(query.license_id, query.actor)
        amendments = await self.amendment_repository.find_by_license(license.id)
        return [AmendmentDTO.from_entity(a) for a in amendments]


class GetAmendmentHistoryHandler(_AmendmentQueryHandler):
    """Handler for the per-field change trail of a license."""

    async def handle(self, query: GetAmendmentsQuery) -> List[AmendmentHistoryItemDTO]:
        """
        Field changes applied by approved amendments, oldest first.

        Returns:
            One AmendmentHistoryItemDTO per changed field
        """
        license = await self.visible_license(query.license_id, query.actor)
        amendments = await self.amendment_repository.find_by_license(license.id)
        applied = sorted(
            (a for a in amendments if a.status == AmendmentStatus.APPROVED),
            key=lambda a: a.amendment_number,
        )
        return [
            AmendmentHistoryItemDTO(
                amendment_id=amendment.id,
                amendment_number=amendment.amendment_number,
                field=change.field,
                before=change.before,
                after=change.after,
                decided_at=amendment.decided_at,
            )
            for amendment in applied
            for change in amendment.changes
        ]


class GetPendingAmendmentsHandler(_AmendmentQueryHandler):
    """Handler for GetPendingAmendmentsQuery."""

    async def handle(self, query: GetPendingAmendmentsQuery) -> List[AmendmentDTO]:
        amendments = await self.amendment_repository.find_pending_for_approver(query.actor.user_id)
        return [AmendmentDTO.from_entity(a) for a in amendments]


class _ExtensionQueryHandler(_QueryHandler):
    def __init__(
        self,
        license_repository: LicenseRepository,
        extension_repository: ExtensionRepository,
        brand_repository: BrandRepository,
        asset_repository: AssetRepository,
    ):
        """Initialize handler with repositories."""
        super().__init__(license_repository, brand_repository, asset_repository)
        self.extension_repository = extension_repository


class GetExtensionsHandler(_ExtensionQueryHandler):
    """Handler for GetExtensionsQuery."""

    async def handle(self, query: GetExtensionsQuery) -> List[ExtensionDTO]:
        """Extension requests of a license, newest first."""
        license = await self.visible_license(query.license_id, query.actor)
        extensions = await self.extension_repository.find_by_licenses([license.id])
        return [ExtensionDTO.from_entity(e) for e in extensions]


class GetPendingExtensionsHandler(_ExtensionQueryHandler):
    """Handler for GetPendingExtensionsQuery."""

    async def handle(self, query: GetPendingExtensionsQuery) -> List[ExtensionDTO]:
        """
        Extension requests waiting for a decision the actor can make.

        Creators see requests on licenses of the assets they own; admins see
        every pending request. Other roles have nothing to decide.
        """
        actor = query.actor
        if actor.role == Role.CREATOR:
            license_ids = []
            for asset_id in await self.asset_repository.find_asset_ids_owned_by(actor.user_id):
                licenses = await self.license_repository.find_by_filters(ip_asset_id=asset_id)
                license_ids += [license.id for license in licenses]
            extensions = await self.extension_repository.find_by_licenses(license_ids, pending_only=True)
        elif actor.role == Role.ADMIN:
            extensions = [
                e for e in await self.extension_repository.find_all() if e.status == ExtensionStatus.PENDING
            ]
        elif actor.role in (Role.BRAND, Role.SYSTEM):
            extensions = []
        else:
            raise ValueError(f"Unhandled role: {actor.role}")
        return [ExtensionDTO.from_entity(e) for e in extensions if e.approval_required]


class GetExtensionAnalyticsHandler(_ExtensionQueryHandler):
    """Handler for GetExtensionAnalyticsQuery."""

    async def handle(self, query: GetExtensionAnalyticsQuery) -> ExtensionAnalyticsDTO:
        """
        Extension statistics, for one brand or platform-wide.

        Only approved requests count towards the additional fee total.
        """
        if query.brand_id is None:
            if not query.actor.is_admin:
                raise LicensePermissionError("Only admins can see platform-wide analytics")
            extensions = await self.extension_repository.find_all()
        else:
            await self.require_brand_owner(query.brand_id, query.actor)
            licenses = await self.license_repository.find_by_filters(brand_id=query.brand_id)
            extensions = await self.extension_repository.find_by_licenses([license.id for license in licenses])

        by_status: Dict[ExtensionStatus, int] = {}
        for extension in extensions:
            by_status[extension.status] = by_status.get(extension.status, 0) + 1
        average: Optional[float] = None
        if extensions:
            average = round(sum(e.extension_days for e in extensions) / len(extensions), 2)
        return ExtensionAnalyticsDTO(
            total=len(extensions),
            approved=by_status.get(ExtensionStatus.APPROVED, 0),
            rejected=by_status.get(ExtensionStatus.REJECTED, 0),
            pending=by_status.get(ExtensionStatus.PENDING, 0),
            average_extension_days=average or 0.0,
            total_additional_fees_cents=sum(
                e.additional_fee_cents for e in extensions if e.status == ExtensionStatus.APPROVED
            ),
        )
