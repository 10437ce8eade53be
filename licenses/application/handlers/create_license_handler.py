"""
License creation handlers.

Validation, fee quotes and creation of DRAFT licenses.
"""
import logging
from typing import Optional

from assets.ports.asset_repository import AssetRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.exceptions import (
    AssetNotFoundError,
    BrandNotFoundError,
    ConflictError,
    LicensePermissionError,
    ValidationError,
)
from core.domain.value_objects import Actor, Role
from core.infrastructure.database import async_transaction
from core.infrastructure.events import event_bus as default_event_bus
from core.metrics import license_validations_total, licenses_created_total
from licenses.application.commands.create_license import CreateLicenseCommand
from licenses.application.dto.license_dto import CreateLicenseResultDTO, FeeQuoteDTO, LicenseDTO
from licenses.application.queries.conflict_queries import CalculateFeeQuery, ValidateLicenseQuery
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.application.services.policy import get_licensing_policy
from licenses.domain.events import LicenseCreated
from licenses.domain.license import License
from licenses.domain.metadata import ConflictSnapshot, LicenseMetadata
from licenses.domain.policy import LicensingPolicy
from licenses.domain.pricing import FeeCalculator, FeeInput
from licenses.domain.validation import LicenseInput, ValidationPipeline, ValidationResult
from licenses.ports.audit_log_repository import AuditEntry, AuditLogRepository
from licenses.ports.license_repository import LicenseRepository

logger = logging.getLogger(__name__)


def raise_for_result(result: ValidationResult) -> None:
    """Turn a failed validation into ConflictError or ValidationError."""
    if result.valid:
        return
    if result.conflicts:
        raise ConflictError("License conflicts with existing licenses", result.conflicts)
    raise ValidationError(
        "License validation failed", errors=result.all_errors, warnings=result.all_warnings
    )


class ValidateLicenseHandler:
    """Handler for ValidateLicenseQuery."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        asset_repository: AssetRepository,
        brand_repository: BrandRepository,
    ):
        """Initialize handler with repositories."""
        self.pipeline = ValidationPipeline(license_repository, asset_repository, brand_repository)

    async def handle(self, query: ValidateLicenseQuery) -> ValidationResult:
        """
        Run the validation pipeline without side effects.

        Args:
            query: ValidateLicenseQuery

        Returns:
            ValidationResult with every check that ran
        """
        data = LicenseInput(
            ip_asset_id=query.ip_asset_id,
            brand_id=query.brand_id,
            license_type=query.license_type,
            start_date=query.start_date,
            end_date=query.end_date,
            fee_cents=query.fee_cents,
            rev_share_bps=query.rev_share_bps,
            scope=query.scope,
            exclude_license_id=query.exclude_license_id,
        )
        result = await self.pipeline.validate(data, collect_all=query.collect_all)
        license_validations_total.labels(outcome="valid" if result.valid else "invalid").inc()
        return result


class CalculateFeeHandler:
    """Handler for CalculateFeeQuery."""

    def __init__(
        self,
        asset_repository: AssetRepository,
        brand_repository: BrandRepository,
        policy: Optional[LicensingPolicy] = None,
    ):
        """Initialize handler with repositories."""
        self.asset_repository = asset_repository
        self.brand_repository = brand_repository
        policy = policy or get_licensing_policy()
        self.calculator = FeeCalculator(policy.minimum_fee_cents)

    async def handle(self, query: CalculateFeeQuery) -> FeeQuoteDTO:
        """
        Quote a fee for proposed terms.

        Raises:
            AssetNotFoundError: Asset type not given and asset unknown
        """
        asset_type = query.asset_type
        if asset_type is None:
            asset = await self.asset_repository.find_by_id(query.ip_asset_id)
            if asset is None or asset.is_deleted:
                raise AssetNotFoundError()
            asset_type = asset.asset_type
        brand = await self.brand_repository.find_by_id(query.brand_id)
        breakdown = self.calculator.calculate(
            FeeInput(
                asset_type=asset_type,
                license_type=query.license_type,
                start_date=query.start_date,
                end_date=query.end_date,
                scope=query.scope,
                brand_total_spent_cents=brand.total_spent_cents if brand else 0,
            )
        )
        suggested = FeeCalculator.suggest_rev_share(query.license_type, breakdown.total_fee_cents)
        rev_share = query.rev_share_bps if query.rev_share_bps is not None else suggested
        estimate = FeeCalculator.estimate_total_value(
            breakdown.total_fee_cents, rev_share, query.projected_revenue_cents
        )
        return FeeQuoteDTO(
            breakdown=breakdown.to_dict(),
            suggested_rev_share_bps=suggested,
            total_value=estimate.to_dict(),
        )


class CreateLicenseHandler:
    """Handler for CreateLicenseCommand."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        asset_repository: AssetRepository,
        brand_repository: BrandRepository,
        audit_repository: AuditLogRepository,
        policy: Optional[LicensingPolicy] = None,
        preview_service: Optional[ConflictPreviewService] = None,
        event_bus=default_event_bus,
        atomic=async_transaction,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.asset_repository = asset_repository
        self.brand_repository = brand_repository
        self.audit_repository = audit_repository
        self.policy = policy or get_licensing_policy()
        self.preview_service = preview_service or ConflictPreviewService(license_repository)
        self.event_bus = event_bus
        self.atomic = atomic
        self.pipeline = ValidationPipeline(license_repository, asset_repository, brand_repository)
        self.calculator = FeeCalculator(self.policy.minimum_fee_cents)

    async def _check_actor(self, command: CreateLicenseCommand) -> None:
        actor: Actor = command.actor
        if actor.role in (Role.ADMIN, Role.SYSTEM):
            return
        if actor.role == Role.CREATOR:
            raise LicensePermissionError("Only brands can request licenses")
        if actor.role == Role.BRAND:
            brand = await self.brand_repository.find_by_id(command.brand_id)
            if brand is None or brand.is_deleted:
                raise BrandNotFoundError()
            if not brand.is_owned_by(actor.user_id):
                raise LicensePermissionError("You can only create licenses for your own brand")
            return
        raise ValueError(f"Unhandled role: {actor.role}")

    async def handle(self, command: CreateLicenseCommand) -> CreateLicenseResultDTO:
        """
        Handle create license command.

        Args:
            command: CreateLicenseCommand

        Returns:
            CreateLicenseResultDTO with the DRAFT license and validation warnings

        Raises:
            LicensePermissionError: Actor may not create for this brand
            AssetNotFoundError: Asset does not exist
            ConflictError: Proposed grant collides with existing grants
            ValidationError: Any other failing check
        """
        await self._check_actor(command)

        async with self.atomic():
            # Serialises conflict detection per asset.
            await self.asset_repository.lock(command.ip_asset_id)
            asset = await self.asset_repository.find_by_id(command.ip_asset_id)
            if asset is None:
                raise AssetNotFoundError()

            fee_breakdown = None
            fee_cents = command.fee_cents
            if fee_cents is None:
                brand = await self.brand_repository.find_by_id(command.brand_id)
                fee_breakdown = self.calculator.calculate(
                    FeeInput(
                        asset_type=asset.asset_type,
                        license_type=command.license_type,
                        start_date=command.start_date,
                        end_date=command.end_date,
                        scope=command.scope,
                        brand_total_spent_cents=brand.total_spent_cents if brand else 0,
                    )
                )
                fee_cents = fee_breakdown.total_fee_cents

            data = LicenseInput(
                ip_asset_id=command.ip_asset_id,
                brand_id=command.brand_id,
                license_type=command.license_type,
                start_date=command.start_date,
                end_date=command.end_date,
                fee_cents=fee_cents,
                rev_share_bps=command.rev_share_bps,
                scope=command.scope,
            )
            ctx = await self.pipeline.load_context(data)
            result = self.pipeline.run(ctx, collect_all=True)
            license_validations_total.labels(outcome="valid" if result.valid else "invalid").inc()
            raise_for_result(result)

            metadata = LicenseMetadata(
                approval_requirements=result.approval.to_record(),
                conflict_snapshot=ConflictSnapshot(
                    checked_at=ctx.now,
                    warnings=tuple(result.all_warnings),
                    conflicting_license_ids=tuple(str(lic.id) for lic in ctx.existing),
                ),
            )
            try:
                license = License.create(
                    ip_asset_id=command.ip_asset_id,
                    brand_id=command.brand_id,
                    license_type=command.license_type,
                    start_date=command.start_date,
                    end_date=command.end_date,
                    fee_cents=fee_cents,
                    rev_share_bps=command.rev_share_bps,
                    scope=command.scope,
                    auto_renew=command.auto_renew,
                    payment_terms=command.payment_terms,
                    billing_frequency=command.billing_frequency,
                    project_id=command.project_id,
                    metadata=metadata,
                    created_by=command.actor.user_id,
                )
            except ValueError as e:
                raise ValidationError(str(e))
            saved = await self.license_repository.save(license)
            await self.audit_repository.record(
                AuditEntry(
                    entity_type="license",
                    entity_id=saved.id,
                    action="created",
                    actor=command.actor.user_id,
                    brand_id=saved.brand_id,
                    changes={
                        "license_type": saved.license_type.value,
                        "fee_cents": saved.fee_cents,
                        "start_date": saved.start_date.isoformat(),
                        "end_date": saved.end_date.isoformat(),
                    },
                )
            )

        licenses_created_total.labels(license_type=saved.license_type.value, origin="direct").inc()
        logger.info(
            "License %s created for brand %s on asset %s",
            saved.id,
            saved.brand_id,
            saved.ip_asset_id,
            extra={"actor": command.actor.user_id, "fee_cents": saved.fee_cents},
        )
        await self.preview_service.invalidate(saved.ip_asset_id)
        await self.event_bus.publish(
            LicenseCreated(
                license_id=saved.id,
                brand_id=saved.brand_id,
                ip_asset_id=saved.ip_asset_id,
                license_type=saved.license_type.value,
                fee_cents=saved.fee_cents,
                created_by=command.actor.user_id,
            )
        )
        return CreateLicenseResultDTO(
            license=LicenseDTO.from_entity(saved),
            warnings=result.all_warnings,
            approval=result.approval.to_dict(),
            fee_breakdown=fee_breakdown.to_dict() if fee_breakdown else None,
        )
