"""
Approval and signature handlers.

Drive a license from PENDING_APPROVAL through PENDING_SIGNATURE to ACTIVE.
"""
import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from assets.ports.asset_repository import AssetRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.clock import utc_now
from core.domain.exceptions import LicensePermissionError, StateTransitionError, ValidationError
from core.domain.value_objects import Actor, LicenseStatus, Role
from core.infrastructure.database import async_transaction
from core.infrastructure.events import event_bus as default_event_bus
from licenses.application.commands.approve_license import (
    ApprovalAction,
    ProcessLicenseApprovalCommand,
    SignLicenseCommand,
)
from licenses.application.dto.license_dto import (
    ApprovalResultDTO,
    LicenseDTO,
    SignatureResultDTO,
    SignatureVerificationDTO,
)
from licenses.application.queries.license_queries import VerifySignatureQuery
from licenses.application.services.access import LicenseAccess
from licenses.application.services.conflict_guard import CommittedConflictGuard
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.application.services.lookup import load_license, lock_license_and_asset
from licenses.application.services.status_transition_service import StatusTransitionService
from licenses.domain.events import LicenseApprovalRecorded, LicenseSigned
from licenses.domain.license import License
from licenses.domain.metadata import ApprovalHistoryEntry, SignatureRecord
from licenses.domain.signatures import signature_proof, verify_proof
from licenses.ports.audit_log_repository import AuditEntry, AuditLogRepository
from licenses.ports.license_repository import LicenseRepository
from licenses.ports.status_history_repository import StatusHistoryRepository

logger = logging.getLogger(__name__)

S = LicenseStatus

ACTION_TARGETS = {
    ApprovalAction.REJECT: S.REJECTED,
    ApprovalAction.REQUEST_CHANGES: S.DRAFT,
}


def current_round(history: Tuple[ApprovalHistoryEntry, ...]) -> List[ApprovalHistoryEntry]:
    """Approvals recorded since the license was last sent back or rejected."""
    entries: List[ApprovalHistoryEntry] = []
    for entry in history:
        if entry.action == ApprovalAction.APPROVE.value:
            entries.append(entry)
        else:
            entries = []
    return entries


class _LicenseWorkflowHandler:
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
        self.audit_repository = audit_repository
        self.access = LicenseAccess(brand_repository, asset_repository)
        self.guard = CommittedConflictGuard(license_repository)
        self.transitions = StatusTransitionService(
            license_repository, history_repository, audit_repository
        )
        self.preview_service = preview_service or ConflictPreviewService(license_repository)
        self.event_bus = event_bus
        self.atomic = atomic


class ProcessLicenseApprovalHandler(_LicenseWorkflowHandler):
    """Handler for ProcessLicenseApprovalCommand."""

    async def _authorize(self, license: License, actor: Actor, action: ApprovalAction) -> None:
        if actor.role == Role.ADMIN:
            return
        if actor.role == Role.CREATOR:
            if not await self.access.is_asset_owner(license.ip_asset_id, actor):
                raise LicensePermissionError("Only IP owners can approve this license")
            return
        if actor.role == Role.BRAND:
            if action != ApprovalAction.REQUEST_CHANGES:
                raise LicensePermissionError("Brands can only request changes to a pending license")
            if not await self.access.is_brand_owner(license, actor):
                raise LicensePermissionError("You do not have access to this license")
            return
        if actor.role == Role.SYSTEM:
            raise LicensePermissionError("Approvals must be made by a person")
        raise ValueError(f"Unhandled role: {actor.role}")

    async def outstanding(self, license: License, approvals: List[ApprovalHistoryEntry]) -> List[str]:
        """Approver roles still missing from the current round."""
        approved_creators = {e.user_id for e in approvals if e.role == Role.CREATOR}
        missing = [
            f"creator:{user_id}"
            for user_id in await self.access.owner_user_ids(license.ip_asset_id)
            if user_id not in approved_creators
        ]
        if license.metadata.approval_requirements.requires_admin and not any(
            e.role == Role.ADMIN for e in approvals
        ):
            missing.append("admin")
        return missing

    async def handle(self, command: ProcessLicenseApprovalCommand) -> ApprovalResultDTO:
        """
        Record an approval decision.

        Args:
            command: ProcessLicenseApprovalCommand

        Returns:
            ApprovalResultDTO with the license and outstanding approver roles

        Raises:
            LicenseNotFoundError: If license not found
            LicensePermissionError: Actor may not take this action
            StateTransitionError: License is not awaiting approval
        """
        actor = command.actor
        events = []
        async with self.atomic():
            license = await load_license(self.license_repository, command.license_id, for_update=True)
            if license.status != S.PENDING_APPROVAL:
                raise StateTransitionError(f"License is {license.status.value}, not awaiting approval")
            await self._authorize(license, actor, command.action)
            if command.action == ApprovalAction.APPROVE and any(
                e.user_id == actor.user_id for e in current_round(license.metadata.approval_history)
            ):
                raise ValidationError("You have already approved this license")

            now = utc_now()
            entry = ApprovalHistoryEntry(
                user_id=actor.user_id,
                role=actor.role,
                action=command.action.value,
                previous_status=license.status.value,
                new_status=license.status.value,
                at=now,
                comments=command.comments,
            )
            history = license.metadata.approval_history + (entry,)
            target = ACTION_TARGETS.get(command.action)
            outstanding: List[str] = []
            if target is None:
                outstanding = await self.outstanding(license, current_round(history))
                if not outstanding:
                    target = S.PENDING_SIGNATURE
            if target is not None:
                entry = replace(entry, new_status=target.value)
                history = history[:-1] + (entry,)

            metadata = replace(license.metadata, approval_history=history)
            if target == S.PENDING_SIGNATURE:
                metadata = replace(metadata, terms_hash=license.terms_hash())
            license = license.with_metadata(metadata)

            if target is None:
                license = await self.license_repository.save(license)
            else:
                outcome = await self.transitions.transition(
                    license,
                    target,
                    actor.user_id,
                    reason=command.comments or f"License {command.action.value} by {actor.role.value.lower()}",
                )
                license = outcome.license
                events.append(outcome.event)
            await self.audit_repository.record(
                AuditEntry(
                    entity_type="license",
                    entity_id=license.id,
                    action="approval_recorded",
                    actor=actor.user_id,
                    brand_id=license.brand_id,
                    changes={"action": command.action.value, "comments": command.comments},
                )
            )

        logger.info(
            "License %s: %s by %s (outstanding: %s)",
            license.id,
            command.action.value,
            actor,
            ", ".join(outstanding) or "none",
        )
        if target is not None:
            await self.preview_service.invalidate(license.ip_asset_id)
        await self.event_bus.publish(
            LicenseApprovalRecorded(
                license_id=license.id,
                user_id=actor.user_id,
                role=actor.role.value,
                action=command.action.value,
                comments=command.comments,
            )
        )
        await self.event_bus.publish_all(events)
        return ApprovalResultDTO(
            license=LicenseDTO.from_entity(license),
            action=command.action.value,
            outstanding=outstanding,
        )


class SignLicenseHandler(_LicenseWorkflowHandler):
    """Handler for SignLicenseCommand."""

    async def required_signers(self, license: License) -> List[str]:
        brand_owner = await self.access.brand_owner_id(license.brand_id)
        owners = await self.access.owner_user_ids(license.ip_asset_id)
        return list(dict.fromkeys(([brand_owner] if brand_owner else []) + owners))

    async def handle(self, command: SignLicenseCommand) -> SignatureResultDTO:
        """
        Sign a license awaiting signature.

        Once the brand and every owner have signed, the signature proof is
        stored and the license becomes ACTIVE.

        Raises:
            LicensePermissionError: Actor is not a party to the license
            StateTransitionError: License is not awaiting signature
            ValidationError: Actor already signed
            ConflictError: Activation would collide with another held grant
        """
        actor = command.actor
        events = []
        async with self.atomic():
            license = await lock_license_and_asset(
                self.license_repository, self.asset_repository, command.license_id
            )
            if license.status != S.PENDING_SIGNATURE:
                raise StateTransitionError(f"License is {license.status.value}, not awaiting signature")
            if actor.role == Role.BRAND:
                permitted = await self.access.is_brand_owner(license, actor)
            elif actor.role == Role.CREATOR:
                permitted = await self.access.is_asset_owner(license.ip_asset_id, actor)
            elif actor.role in (Role.ADMIN, Role.SYSTEM):
                permitted = False
            else:
                raise ValueError(f"Unhandled role: {actor.role}")
            if not permitted:
                raise LicensePermissionError("Only the brand owner and IP owners can sign a license")
            if any(s.user_id == actor.user_id for s in license.metadata.signatures):
                raise ValidationError("You have already signed this license")

            terms_hash = license.terms_hash()
            record = SignatureRecord(
                user_id=actor.user_id, role=actor.role, signed_at=utc_now(), terms_hash=terms_hash
            )
            signatures = license.metadata.signatures + (record,)
            signed = {s.user_id for s in signatures}
            remaining = [u for u in await self.required_signers(license) if u not in signed]
            metadata = replace(license.metadata, signatures=signatures, terms_hash=terms_hash)
            if not remaining:
                metadata = replace(metadata, signature_proof=signature_proof(terms_hash, signatures))
            license = license.with_metadata(metadata)

            if remaining:
                license = await self.license_repository.save(license)
            else:
                await self.guard.ensure_clear(license, "License conflicts with an active license; cannot activate")
                outcome = await self.transitions.transition(
                    license, S.ACTIVE, actor.user_id, reason="All parties signed"
                )
                license = outcome.license
                events.append(outcome.event)
            await self.audit_repository.record(
                AuditEntry(
                    entity_type="license",
                    entity_id=license.id,
                    action="signed",
                    actor=actor.user_id,
                    brand_id=license.brand_id,
                    changes={"terms_hash": terms_hash, "fully_executed": not remaining},
                )
            )

        logger.info("License %s signed by %s; %d signer(s) remaining", license.id, actor, len(remaining))
        if not remaining:
            await self.preview_service.invalidate(license.ip_asset_id)
        await self.event_bus.publish(
            LicenseSigned(
                license_id=license.id,
                user_id=actor.user_id,
                role=actor.role.value,
                fully_executed=not remaining,
            )
        )
        await self.event_bus.publish_all(events)
        return SignatureResultDTO(
            license=LicenseDTO.from_entity(license),
            fully_executed=not remaining,
            remaining_signers=remaining,
        )


class VerifySignatureHandler:
    """Handler for VerifySignatureQuery."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        brand_repository: BrandRepository,
        asset_repository: AssetRepository,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.access = LicenseAccess(brand_repository, asset_repository)

    async def handle(self, query: VerifySignatureQuery) -> SignatureVerificationDTO:
        """
        Recompute the signature proof against the current terms.

        Raises:
            LicenseNotFoundError: If license not found
            LicensePermissionError: Actor is not a party to the license
        """
        license = await load_license(self.license_repository, query.license_id)
        await self.access.require_party(license, query.actor)
        terms_hash = license.terms_hash()
        signatures = license.metadata.signatures
        return SignatureVerificationDTO(
            license_id=license.id,
            valid=verify_proof(license.metadata.signature_proof, terms_hash, signatures),
            terms_hash=terms_hash,
            signers=[s.to_dict() for s in signatures],
            signature_proof=license.metadata.signature_proof,
        )
