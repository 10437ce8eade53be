"""
Status handlers.

Manual transitions, submission for approval and termination.
"""
import logging
from dataclasses import replace
from typing import Dict, FrozenSet, Optional

from assets.ports.asset_repository import AssetRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.exceptions import LicensePermissionError, ValidationError
from core.domain.value_objects import Actor, LicenseStatus, Role
from core.infrastructure.database import async_transaction
from core.infrastructure.events import event_bus as default_event_bus
from licenses.application.commands.transition_status import (
    SubmitLicenseCommand,
    TerminateLicenseCommand,
    TransitionStatusCommand,
)
from licenses.application.dto.license_dto import LicenseDTO
from licenses.application.services.access import LicenseAccess
from licenses.application.services.conflict_guard import CommittedConflictGuard
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.application.services.lookup import load_license, lock_license_and_asset
from licenses.application.services.status_transition_service import StatusTransitionService
from licenses.domain.license import License
from licenses.ports.audit_log_repository import AuditLogRepository
from licenses.ports.license_repository import LicenseRepository
from licenses.ports.status_history_repository import StatusHistoryRepository

logger = logging.getLogger(__name__)

S = LicenseStatus

# Targets each party may request directly; admins and the scheduler may request any legal edge.
PARTY_TARGETS: Dict[Role, FrozenSet[LicenseStatus]] = {
    Role.BRAND: frozenset({S.PENDING_APPROVAL, S.CANCELED, S.TERMINATED}),
    Role.CREATOR: frozenset({S.DISPUTED}),
}
# Targets that commit a license on its asset; entering them re-checks conflicts.
COMMITTING_TARGETS = frozenset({S.PENDING_APPROVAL, S.ACTIVE})


class _StatusHandler:
    def __init__(
        self,
        license_repository: LicenseRepository,
        history_repository: StatusHistoryRepository,
        audit_repository: AuditLogRepository,
        brand_repository: BrandRepository,
        asset_repository: AssetRepository,
        preview_service: Optional[ConflictPreviewService] = None,
        event_bus=default_event_bus,
        atomic=async_transaction,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.asset_repository = asset_repository
        self.access = LicenseAccess(brand_repository, asset_repository)
        self.guard = CommittedConflictGuard(license_repository)
        self.transitions = StatusTransitionService(
            license_repository, history_repository, audit_repository
        )
        self.preview_service = preview_service or ConflictPreviewService(license_repository)
        self.event_bus = event_bus
        self.atomic = atomic

    async def _is_owner_party(self, license: License, actor: Actor) -> bool:
        if actor.role == Role.BRAND:
            return await self.access.is_brand_owner(license, actor)
        if actor.role == Role.CREATOR:
            return await self.access.is_asset_owner(license.ip_asset_id, actor)
        return False


class TransitionStatusHandler(_StatusHandler):
    """Handler for TransitionStatusCommand."""

    async def _authorize(self, license: License, actor: Actor, target: LicenseStatus) -> None:
        if actor.role in (Role.ADMIN, Role.SYSTEM):
            return
        if actor.role in (Role.BRAND, Role.CREATOR):
            if target not in PARTY_TARGETS[actor.role]:
                raise LicensePermissionError(
                    f"{actor.role.value} users cannot move a license to {target.value}"
                )
            if not await self._is_owner_party(license, actor):
                raise LicensePermissionError("You do not have access to this license")
            return
        raise ValueError(f"Unhandled role: {actor.role}")

    async def handle(self, command: TransitionStatusCommand) -> LicenseDTO:
        """
        Handle transition status command.

        Args:
            command: TransitionStatusCommand

        Returns:
            LicenseDTO in the new status

        Raises:
            LicenseNotFoundError: If license not found
            LicensePermissionError: Actor may not request this transition
            StateTransitionError: Illegal edge or unmet requirement
            ConflictError: Target commits the license over another held grant
        """
        committing = command.to_status in COMMITTING_TARGETS
        async with self.atomic():
            if committing:
                license = await lock_license_and_asset(
                    self.license_repository, self.asset_repository, command.license_id
                )
            else:
                license = await load_license(self.license_repository, command.license_id, for_update=True)
            await self._authorize(license, command.actor, command.to_status)
            if committing and license.status != command.to_status:
                await self.guard.ensure_clear(
                    license, f"License conflicts with existing licenses; cannot move to {command.to_status.value}"
                )
            outcome = await self.transitions.transition(
                license,
                command.to_status,
                command.actor.user_id,
                reason=command.reason,
                automated=command.automated,
            )

        await self.preview_service.invalidate(license.ip_asset_id)
        await self.event_bus.publish(outcome.event)
        return LicenseDTO.from_entity(outcome.license)


class SubmitLicenseHandler(_StatusHandler):
    """Handler for SubmitLicenseCommand."""

    async def handle(self, command: SubmitLicenseCommand) -> LicenseDTO:
        """
        Submit a DRAFT license for approval.

        Raises:
            LicensePermissionError: Actor is not the brand owner or an admin
            StateTransitionError: License is not a complete DRAFT
            ConflictError: Another submitted or active grant collides with the license
        """
        actor = command.actor
        async with self.atomic():
            license = await lock_license_and_asset(
                self.license_repository, self.asset_repository, command.license_id
            )
            if not actor.is_admin and not await self.access.is_brand_owner(license, actor):
                raise LicensePermissionError("Only the brand owner can submit a license for approval")
            await self.guard.ensure_clear(license, "License conflicts with a submitted or active license")
            outcome = await self.transitions.transition(
                license, S.PENDING_APPROVAL, actor.user_id, reason="Submitted for approval"
            )

        await self.preview_service.invalidate(license.ip_asset_id)
        await self.event_bus.publish(outcome.event)
        return LicenseDTO.from_entity(outcome.license)


class TerminateLicenseHandler(_StatusHandler):
    """Handler for TerminateLicenseCommand."""

    async def handle(self, command: TerminateLicenseCommand) -> LicenseDTO:
        """
        Terminate an in-force license.

        Raises:
            ValidationError: Reason missing
            LicensePermissionError: Actor is not the brand owner or an admin
            StateTransitionError: License cannot be terminated from its status
        """
        reason = (command.reason or "").strip()
        if not reason:
            raise ValidationError("A termination reason is required")
        actor = command.actor
        async with self.atomic():
            license = await load_license(self.license_repository, command.license_id, for_update=True)
            if not actor.is_admin and not await self.access.is_brand_owner(license, actor):
                raise LicensePermissionError("Only the brand owner or an admin can terminate a license")
            license = license.with_metadata(replace(license.metadata, termination_reason=reason))
            outcome = await self.transitions.transition(
                license, S.TERMINATED, actor.user_id, reason=reason
            )

        logger.info("License %s terminated by %s", license.id, actor)
        await self.preview_service.invalidate(license.ip_asset_id)
        await self.event_bus.publish(outcome.event)
        return LicenseDTO.from_entity(outcome.license)
