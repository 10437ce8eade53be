"""
Extension handlers.

Short extensions apply immediately; longer ones wait for an IP owner.
"""
import logging
from datetime import timedelta
from typing import List, Optional

from assets.ports.asset_repository import AssetRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.clock import utc_now
from core.domain.exceptions import ConflictError, LicensePermissionError, ValidationError
from core.domain.value_objects import SYSTEM_ACTOR_ID, Actor, LicenseStatus, LicenseType, Role
from core.infrastructure.database import async_transaction
from core.infrastructure.events import event_bus as default_event_bus
from core.metrics import extensions_total
from licenses.application.commands.extensions import (
    ProcessExtensionApprovalCommand,
    RequestExtensionCommand,
)
from licenses.application.dto.license_dto import ExtensionDTO, ExtensionResultDTO, LicenseDTO
from licenses.application.services.access import LicenseAccess
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.application.services.lookup import load_extension, lock_license_and_asset
from licenses.application.services.policy import get_licensing_policy
from licenses.application.services.status_transition_service import StatusTransitionService
from licenses.domain.conflicts import COMMITTED_STATUSES, Conflict, ConflictReason
from licenses.domain.events import ExtensionDecided, ExtensionRequested
from licenses.domain.extension import Extension, ExtensionStatus, prorated_fee
from licenses.domain.license import License
from licenses.domain.policy import LicensingPolicy
from licenses.ports.audit_log_repository import AuditEntry, AuditLogRepository
from licenses.ports.extension_repository import ExtensionRepository
from licenses.ports.license_repository import LicenseRepository
from licenses.ports.status_history_repository import StatusHistoryRepository

logger = logging.getLogger(__name__)

EXTENDABLE_STATUSES = frozenset({LicenseStatus.ACTIVE, LicenseStatus.EXPIRING_SOON})
EXPIRED_REASON = "Extension request expired"


def decided_event(extension: Extension) -> ExtensionDecided:
    return ExtensionDecided(
        extension_id=extension.id,
        license_id=extension.license_id,
        status=extension.status.value,
        requested_by=extension.requested_by,
        new_end_date=extension.new_end_date,
        rejection_reason=extension.rejection_reason,
    )


def ensure_extendable(license: License) -> None:
    if license.status not in EXTENDABLE_STATUSES:
        raise ValidationError(
            f"Cannot extend {license.status.value} licenses; only ACTIVE or EXPIRING_SOON licenses can be extended"
        )


class _ExtensionHandler:
    def __init__(
        self,
        license_repository: LicenseRepository,
        extension_repository: ExtensionRepository,
        history_repository: StatusHistoryRepository,
        audit_repository: AuditLogRepository,
        brand_repository: BrandRepository,
        asset_repository: AssetRepository,
        policy: Optional[LicensingPolicy] = None,
        preview_service: Optional[ConflictPreviewService] = None,
        event_bus=default_event_bus,
        atomic=async_transaction,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.extension_repository = extension_repository
        self.audit_repository = audit_repository
        self.asset_repository = asset_repository
        self.access = LicenseAccess(brand_repository, asset_repository)
        self.transitions = StatusTransitionService(
            license_repository, history_repository, audit_repository
        )
        self.policy = policy or get_licensing_policy()
        self.preview_service = preview_service or ConflictPreviewService(license_repository)
        self.event_bus = event_bus
        self.atomic = atomic

    async def check_conflicts(self, license: License, new_end_date) -> None:
        """
        Exclusive licenses may not be extended into another exclusive grant.

        Raises:
            ConflictError: Another EXCLUSIVE grant intersects the added period
        """
        if license.license_type != LicenseType.EXCLUSIVE:
            return
        existing = await self.license_repository.find_overlapping(
            license.ip_asset_id,
            license.end_date,
            new_end_date,
            COMMITTED_STATUSES,
            exclude_license_id=license.id,
        )
        conflicts: List[Conflict] = []
        for other in existing:
            if other.license_type != LicenseType.EXCLUSIVE or not other.overlaps(license.end_date, new_end_date):
                continue
            conflicts.append(
                Conflict(
                    license_id=other.id,
                    reason=ConflictReason.EXCLUSIVE_OVERLAP,
                    details=(
                        f"Extended period overlaps exclusive license {other.id} "
                        f"({other.start_date.date()} to {other.end_date.date()})"
                    ),
                    conflicting_license=other.summary(),
                    overlap_start=max(license.end_date, other.start_date),
                    overlap_end=min(new_end_date, other.end_date),
                )
            )
        if conflicts:
            raise ConflictError("Extension conflicts with an existing exclusive license", conflicts)

    async def apply(self, license: License, extension: Extension, actor_id: str):
        """
        Extend the license; an EXPIRING_SOON license pushed past the window returns to ACTIVE.

        Returns:
            (license, transition events)
        """
        extended = license.extend(extension.new_end_date, extension.additional_fee_cents)
        events = []
        window_end = utc_now() + timedelta(days=self.policy.expiring_soon_days)
        if extended.status == LicenseStatus.EXPIRING_SOON and extended.end_date > window_end:
            outcome = await self.transitions.transition(
                extended, LicenseStatus.ACTIVE, actor_id, reason="License extended"
            )
            extended = outcome.license
            events.append(outcome.event)
        else:
            extended = await self.license_repository.save(extended)
        await self.audit_repository.record(
            AuditEntry(
                entity_type="license",
                entity_id=license.id,
                action="extended",
                actor=actor_id,
                brand_id=license.brand_id,
                changes={
                    "extension_id": str(extension.id),
                    "end_date": {"from": license.end_date.isoformat(), "to": extended.end_date.isoformat()},
                    "fee_cents": {"from": license.fee_cents, "to": extended.fee_cents},
                },
            )
        )
        return extended, events


class RequestExtensionHandler(_ExtensionHandler):
    """Handler for RequestExtensionCommand."""

    async def handle(self, command: RequestExtensionCommand) -> ExtensionResultDTO:
        """
        Handle request extension command.

        Args:
            command: RequestExtensionCommand

        Returns:
            ExtensionResultDTO; ``auto_approved`` is set when the license was extended at once

        Raises:
            LicenseNotFoundError: If license not found
            LicensePermissionError: Actor is not the brand owner
            ValidationError: License not extendable or days out of range
            ConflictError: Exclusive license would overlap another exclusive grant
        """
        actor: Actor = command.actor
        days = command.extension_days
        if not self.policy.extension_min_days <= days <= self.policy.extension_max_days:
            raise ValidationError(
                f"Extension must be between {self.policy.extension_min_days} and "
                f"{self.policy.extension_max_days} days; use a renewal for longer periods"
            )

        events = []
        async with self.atomic():
            license = await lock_license_and_asset(
                self.license_repository, self.asset_repository, command.license_id
            )
            if not actor.is_admin and not await self.access.is_brand_owner(license, actor):
                raise LicensePermissionError("Only the brand owner can request an extension")
            ensure_extendable(license)

            new_end_date = license.end_date + timedelta(days=days)
            await self.check_conflicts(license, new_end_date)
            extension = Extension.request(
                license_id=license.id,
                requested_by=actor.user_id,
                original_end_date=license.end_date,
                extension_days=days,
                additional_fee_cents=prorated_fee(license.fee_cents, license.duration_days, days),
                justification=command.justification,
                approval_required=days > self.policy.extension_auto_approve_days,
                respond_within_days=self.policy.extension_response_days,
            )
            auto_approved = not extension.approval_required
            if auto_approved:
                extension = extension.approve(SYSTEM_ACTOR_ID)
                license, events = await self.apply(license, extension, actor.user_id)
            extension = await self.extension_repository.save(extension)

        extensions_total.labels(outcome="auto_approved" if auto_approved else "requested").inc()
        logger.info(
            "Extension %s of %d day(s) on license %s (%s)",
            extension.id,
            days,
            license.id,
            "auto-approved" if auto_approved else "pending approval",
        )
        if auto_approved:
            await self.preview_service.invalidate(license.ip_asset_id)
            await self.event_bus.publish(decided_event(extension))
            await self.event_bus.publish_all(events)
        else:
            await self.event_bus.publish(
                ExtensionRequested(
                    extension_id=extension.id,
                    license_id=license.id,
                    requested_by=actor.user_id,
                    extension_days=days,
                    additional_fee_cents=extension.additional_fee_cents,
                )
            )
        return ExtensionResultDTO(
            extension=ExtensionDTO.from_entity(extension),
            auto_approved=auto_approved,
            license=LicenseDTO.from_entity(license) if auto_approved else None,
        )


class ProcessExtensionApprovalHandler(_ExtensionHandler):
    """Handler for ProcessExtensionApprovalCommand."""

    async def handle(self, command: ProcessExtensionApprovalCommand) -> ExtensionResultDTO:
        """
        Approve or reject a pending extension.

        Raises:
            ExtensionNotFoundError: If extension not found
            LicensePermissionError: Actor is not an IP owner
            ValidationError: Request not pending or expired
            ConflictError: Approval would overlap another exclusive grant
        """
        actor = command.actor
        expired = False
        updated_license = None
        events = []
        found = await load_extension(self.extension_repository, command.extension_id)
        async with self.atomic():
            license = await lock_license_and_asset(
                self.license_repository, self.asset_repository, found.license_id
            )
            extension = await load_extension(
                self.extension_repository, command.extension_id, for_update=True
            )
            if extension.status != ExtensionStatus.PENDING:
                raise ValidationError("Extension request is not pending")
            if actor.role == Role.CREATOR:
                permitted = await self.access.is_asset_owner(license.ip_asset_id, actor)
            elif actor.role == Role.ADMIN:
                permitted = True
            elif actor.role in (Role.BRAND, Role.SYSTEM):
                permitted = False
            else:
                raise ValueError(f"Unhandled role: {actor.role}")
            if not permitted:
                raise LicensePermissionError("Only IP owners can approve or reject extensions")

            if extension.is_overdue(utc_now()):
                extension = await self.extension_repository.save(
                    extension.reject(SYSTEM_ACTOR_ID, EXPIRED_REASON)
                )
                expired = True
            elif command.approve:
                ensure_extendable(license)
                if license.end_date != extension.original_end_date:
                    raise ValidationError("License end date changed since the extension was requested")
                await self.check_conflicts(license, extension.new_end_date)
                extension = extension.approve(actor.user_id)
                updated_license, events = await self.apply(license, extension, actor.user_id)
                extension = await self.extension_repository.save(extension)
            else:
                extension = await self.extension_repository.save(
                    extension.reject(actor.user_id, command.rejection_reason)
                )
                await self.audit_repository.record(
                    AuditEntry(
                        entity_type="extension",
                        entity_id=extension.id,
                        action="rejected",
                        actor=actor.user_id,
                        brand_id=license.brand_id,
                        changes={"reason": extension.rejection_reason},
                    )
                )

        await self.event_bus.publish(decided_event(extension))
        if expired:
            extensions_total.labels(outcome="expired").inc()
            raise ValidationError(EXPIRED_REASON)

        extensions_total.labels(outcome=extension.status.value.lower()).inc()
        logger.info("Extension %s %s by %s", extension.id, extension.status.value, actor)
        if updated_license is not None:
            await self.preview_service.invalidate(updated_license.ip_asset_id)
            await self.event_bus.publish_all(events)
        return ExtensionResultDTO(
            extension=ExtensionDTO.from_entity(extension),
            license=LicenseDTO.from_entity(updated_license) if updated_license else None,
        )
