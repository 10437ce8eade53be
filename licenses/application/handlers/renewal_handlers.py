"""
Renewal handlers.

Eligibility checks, offer generation and offer acceptance. Accepting an
offer creates the successor license in PENDING_APPROVAL.
"""
import logging
import uuid
from datetime import timedelta
from typing import Optional

from assets.ports.asset_repository import AssetRepository
from assets.ports.usage_metrics_repository import UsageMetricsRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.clock import utc_now
from core.domain.exceptions import (
    ConflictError,
    LicensePermissionError,
    OfferExpiredError,
    OfferNotPendingError,
    RenewalOfferNotFoundError,
    ValidationError,
)
from core.domain.value_objects import LicenseStatus, Role
from core.infrastructure.database import async_transaction
from core.infrastructure.events import event_bus as default_event_bus
from core.metrics import licenses_created_total, renewal_offers_total
from licenses.application.commands.renewals import (
    AcceptRenewalOfferCommand,
    GenerateRenewalOfferCommand,
)
from licenses.application.dto.license_dto import LicenseDTO, RenewalOfferResultDTO
from licenses.application.queries.workflow_queries import CheckRenewalEligibilityQuery
from licenses.application.services.access import LicenseAccess
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.application.services.lookup import load_license, lock_license_and_asset
from licenses.application.services.policy import get_licensing_policy
from licenses.application.services.renewal_service import RenewalService
from licenses.domain.conflicts import COMMITTED_STATUSES, ConflictDetector, ConflictQuery
from licenses.domain.events import LicenseCreated, RenewalOfferAccepted, RenewalOfferGenerated
from licenses.domain.license import License
from licenses.domain.metadata import LicenseMetadata, OfferStatus, RenewalOfferRecord, RenewalOrigin
from licenses.domain.policy import LicensingPolicy
from licenses.domain.renewal import OPEN_RENEWAL_STATUSES, RENEWABLE_STATUSES, EligibilityResult
from licenses.ports.audit_log_repository import AuditEntry, AuditLogRepository
from licenses.ports.license_repository import LicenseRepository

logger = logging.getLogger(__name__)


class _RenewalHandler:
    def __init__(
        self,
        license_repository: LicenseRepository,
        asset_repository: AssetRepository,
        brand_repository: BrandRepository,
        usage_repository: UsageMetricsRepository,
        audit_repository: AuditLogRepository,
        policy: Optional[LicensingPolicy] = None,
        preview_service: Optional[ConflictPreviewService] = None,
        event_bus=default_event_bus,
        atomic=async_transaction,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.asset_repository = asset_repository
        self.audit_repository = audit_repository
        self.access = LicenseAccess(brand_repository, asset_repository)
        self.policy = policy or get_licensing_policy()
        self.renewals = RenewalService(
            license_repository,
            asset_repository,
            brand_repository,
            usage_repository,
            policy=self.policy,
        )
        self.preview_service = preview_service or ConflictPreviewService(license_repository)
        self.event_bus = event_bus
        self.atomic = atomic


class CheckRenewalEligibilityHandler(_RenewalHandler):
    """Handler for CheckRenewalEligibilityQuery."""

    async def handle(self, query: CheckRenewalEligibilityQuery) -> EligibilityResult:
        """
        Evaluate whether a license can be renewed.

        Returns:
            EligibilityResult with suggested terms when eligible

        Raises:
            LicenseNotFoundError: If license not found
            LicensePermissionError: Actor is not a party to the license
        """
        license = await load_license(self.license_repository, query.license_id)
        await self.access.require_party(license, query.actor)
        return await self.renewals.check_eligibility(license, utc_now())


class GenerateRenewalOfferHandler(_RenewalHandler):
    """Handler for GenerateRenewalOfferCommand."""

    async def handle(self, command: GenerateRenewalOfferCommand) -> RenewalOfferResultDTO:
        """
        Price a renewal and attach a PENDING offer to the license.

        Earlier pending offers on the license are expired.

        Raises:
            LicenseNotFoundError: If license not found
            LicensePermissionError: Actor is not a party to the license
            ValidationError: License not eligible, or strategy input missing
        """
        actor = command.actor
        async with self.atomic():
            license = await load_license(self.license_repository, command.license_id, for_update=True)
            await self.access.require_party(license, actor)
            now = utc_now()
            eligibility = await self.renewals.check_eligibility(license, now, with_terms=False)
            if not eligibility.eligible:
                raise ValidationError(
                    "License is not eligible for renewal",
                    errors=eligibility.reasons,
                    warnings=eligibility.warnings,
                )
            try:
                pricing = await self.renewals.price(
                    license, command.strategy, now, negotiated_percent=command.negotiated_percent
                )
            except ValueError as e:
                raise ValidationError(str(e))

            metadata = license.metadata
            for stale in metadata.renewal_offers:
                if stale.status == OfferStatus.PENDING:
                    metadata = metadata.with_offer(stale.decide(OfferStatus.EXPIRED, now, actor.user_id))
            offer = RenewalOfferRecord(
                id=str(uuid.uuid4()),
                status=OfferStatus.PENDING,
                terms=pricing.to_terms(license),
                created_at=now,
                expires_at=now + timedelta(days=self.policy.offer_lifetime_days),
                created_by=actor.user_id,
            )
            license = await self.license_repository.save(license.with_metadata(metadata.with_offer(offer)))
            await self.audit_repository.record(
                AuditEntry(
                    entity_type="license",
                    entity_id=license.id,
                    action="renewal_offer_generated",
                    actor=actor.user_id,
                    brand_id=license.brand_id,
                    changes={
                        "offer_id": offer.id,
                        "strategy": command.strategy.value,
                        "fee_cents": offer.terms.fee_cents,
                    },
                )
            )

        renewal_offers_total.labels(outcome="generated").inc()
        logger.info(
            "Renewal offer %s generated for license %s (%s, %d cents)",
            offer.id,
            license.id,
            command.strategy.value,
            offer.terms.fee_cents,
        )
        await self.event_bus.publish(
            RenewalOfferGenerated(
                license_id=license.id,
                brand_id=license.brand_id,
                offer_id=offer.id,
                fee_cents=offer.terms.fee_cents,
                expires_at=offer.expires_at,
            )
        )
        return RenewalOfferResultDTO(
            license_id=license.id,
            offer_id=offer.id,
            offer=offer.to_dict(),
            pricing=pricing.to_dict(),
        )


class AcceptRenewalOfferHandler(_RenewalHandler):
    """Handler for AcceptRenewalOfferCommand."""

    async def check_conflicts(self, renewal: License) -> None:
        existing = await self.license_repository.find_overlapping(
            renewal.ip_asset_id,
            renewal.start_date,
            renewal.end_date,
            COMMITTED_STATUSES,
            exclude_license_id=renewal.parent_license_id,
        )
        query = ConflictQuery(
            ip_asset_id=renewal.ip_asset_id,
            start_date=renewal.start_date,
            end_date=renewal.end_date,
            license_type=renewal.license_type,
            scope=renewal.scope,
            brand_id=renewal.brand_id,
            rev_share_bps=renewal.rev_share_bps,
            exclude_license_id=renewal.parent_license_id,
        )
        result = ConflictDetector(COMMITTED_STATUSES).detect(query, existing)
        if result.has_conflicts:
            raise ConflictError("Renewal period conflicts with existing licenses", result.conflicts)

    async def handle(self, command: AcceptRenewalOfferCommand) -> LicenseDTO:
        """
        Handle accept renewal offer command.

        Args:
            command: AcceptRenewalOfferCommand

        Returns:
            LicenseDTO of the new PENDING_APPROVAL renewal license

        Raises:
            LicenseNotFoundError: If license not found
            RenewalOfferNotFoundError: Offer not on the license
            OfferNotPendingError: Offer already accepted, rejected or expired
            OfferExpiredError: Offer past its expiry
            LicensePermissionError: Actor is not the brand owner
            ConflictError: Renewal period collides with existing grants
        """
        actor = command.actor
        expired = False
        async with self.atomic():
            license = await lock_license_and_asset(
                self.license_repository, self.asset_repository, command.license_id
            )
            offer = license.metadata.find_offer(command.offer_id)
            if offer is None:
                raise RenewalOfferNotFoundError()
            if offer.status != OfferStatus.PENDING:
                raise OfferNotPendingError(f"Renewal offer is {offer.status.value}")
            if actor.role == Role.SYSTEM:
                permitted = True
            elif actor.role == Role.BRAND:
                permitted = await self.access.is_brand_owner(license, actor)
            elif actor.role in (Role.CREATOR, Role.ADMIN):
                permitted = False
            else:
                raise ValueError(f"Unhandled role: {actor.role}")
            if not permitted:
                raise LicensePermissionError("Only the brand owner can accept renewal offers")

            now = utc_now()
            if offer.is_expired(now):
                license = await self.license_repository.save(
                    license.with_metadata(
                        license.metadata.with_offer(offer.decide(OfferStatus.EXPIRED, now))
                    )
                )
                expired = True
            else:
                if license.status not in RENEWABLE_STATUSES:
                    raise ValidationError(f"Cannot renew {license.status.value} licenses")
                if await self.license_repository.find_children(license.id, OPEN_RENEWAL_STATUSES):
                    raise ValidationError("License already has a renewal in progress")

                terms = offer.terms
                renewal = License.create(
                    ip_asset_id=license.ip_asset_id,
                    brand_id=license.brand_id,
                    license_type=license.license_type,
                    start_date=terms.start_date,
                    end_date=terms.end_date,
                    fee_cents=terms.fee_cents,
                    rev_share_bps=terms.rev_share_bps,
                    scope=license.scope,
                    auto_renew=license.auto_renew,
                    payment_terms=license.payment_terms,
                    billing_frequency=license.billing_frequency,
                    project_id=license.project_id,
                    parent_license_id=license.id,
                    status=LicenseStatus.PENDING_APPROVAL,
                    metadata=LicenseMetadata(
                        approval_requirements=license.metadata.approval_requirements,
                        renewal_origin=RenewalOrigin(
                            renewed_from=str(license.id),
                            offer_id=offer.id,
                            adjustments=terms.adjustments,
                        ),
                    ),
                    created_by=actor.user_id,
                )
                await self.check_conflicts(renewal)
                renewal = await self.license_repository.save(renewal)
                accepted = offer.decide(OfferStatus.ACCEPTED, now, actor.user_id, str(renewal.id))
                license = await self.license_repository.save(
                    license.with_metadata(license.metadata.with_offer(accepted))
                )
                await self.audit_repository.record(
                    AuditEntry(
                        entity_type="license",
                        entity_id=renewal.id,
                        action="created",
                        actor=actor.user_id,
                        brand_id=renewal.brand_id,
                        changes={"renewed_from": str(license.id), "offer_id": offer.id},
                    )
                )
                await self.audit_repository.record(
                    AuditEntry(
                        entity_type="license",
                        entity_id=license.id,
                        action="renewal_offer_accepted",
                        actor=actor.user_id,
                        brand_id=license.brand_id,
                        changes={"offer_id": offer.id, "renewal_license_id": str(renewal.id)},
                    )
                )

        if expired:
            renewal_offers_total.labels(outcome="expired").inc()
            raise OfferExpiredError()

        renewal_offers_total.labels(outcome="accepted").inc()
        licenses_created_total.labels(license_type=renewal.license_type.value, origin="renewal").inc()
        logger.info("Renewal offer %s accepted; license %s renews %s", offer.id, renewal.id, license.id)
        await self.preview_service.invalidate(renewal.ip_asset_id)
        await self.event_bus.publish(
            LicenseCreated(
                license_id=renewal.id,
                brand_id=renewal.brand_id,
                ip_asset_id=renewal.ip_asset_id,
                license_type=renewal.license_type.value,
                fee_cents=renewal.fee_cents,
                created_by=actor.user_id,
                parent_license_id=license.id,
            )
        )
        await self.event_bus.publish(
            RenewalOfferAccepted(
                license_id=license.id,
                brand_id=license.brand_id,
                offer_id=offer.id,
                renewal_license_id=renewal.id,
                accepted_by=actor.user_id,
            )
        )
        return LicenseDTO.from_entity(renewal)
