"""
Amendment handlers.

Proposals create one approval per counter-party; the last approval
applies the changes to the license in the same transaction.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from assets.ports.asset_repository import AssetRepository
from brands.ports.brand_repository import BrandRepository
from core.domain.clock import utc_now
from core.domain.exceptions import LicensePermissionError, ValidationError
from core.domain.value_objects import Actor, LicenseStatus, Role
from core.infrastructure.database import async_transaction
from core.infrastructure.events import event_bus as default_event_bus
from core.metrics import amendments_total
from licenses.application.commands.amendments import (
    ProcessAmendmentApprovalCommand,
    ProposeAmendmentCommand,
)
from licenses.application.dto.license_dto import AmendmentDTO, AmendmentResultDTO, LicenseDTO
from licenses.application.services.access import LicenseAccess
from licenses.application.services.conflict_guard import CommittedConflictGuard
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.application.services.lookup import load_amendment, lock_license_and_asset
from licenses.application.services.policy import get_licensing_policy
from licenses.domain.amendment import (
    Amendment,
    AmendmentStatus,
    ApprovalStatus,
    FieldChange,
    field_from_json,
    field_to_json,
)
from licenses.domain.events import AmendmentDecided, AmendmentProposed
from licenses.domain.license import License
from licenses.domain.policy import LicensingPolicy
from licenses.ports.amendment_repository import AmendmentRepository
from licenses.ports.audit_log_repository import AuditEntry, AuditLogRepository
from licenses.ports.license_repository import LicenseRepository

logger = logging.getLogger(__name__)

AMENDABLE_STATUSES = frozenset({LicenseStatus.ACTIVE, LicenseStatus.PENDING_APPROVAL})
# Changes that move the grant in time or scope are re-checked for conflicts.
CONFLICT_FIELDS = frozenset({"end_date", "scope"})


def ensure_amendable(license: License) -> None:
    if license.status not in AMENDABLE_STATUSES:
        raise ValidationError(f"Cannot amend {license.status.value} licenses")


def decided_event(amendment: Amendment) -> AmendmentDecided:
    return AmendmentDecided(
        amendment_id=amendment.id,
        license_id=amendment.license_id,
        status=amendment.status.value,
        proposed_by=amendment.proposed_by,
        rejection_reason=amendment.rejection_reason,
    )


class _AmendmentHandler:
    def __init__(
        self,
        license_repository: LicenseRepository,
        amendment_repository: AmendmentRepository,
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
        self.amendment_repository = amendment_repository
        self.audit_repository = audit_repository
        self.asset_repository = asset_repository
        self.access = LicenseAccess(brand_repository, asset_repository)
        self.policy = policy or get_licensing_policy()
        self.preview_service = preview_service or ConflictPreviewService(license_repository)
        self.event_bus = event_bus
        self.atomic = atomic
        self.guard = CommittedConflictGuard(license_repository)

    def apply(self, license: License, amendment: Amendment) -> License:
        try:
            values = {c.field: field_from_json(c.field, c.after) for c in amendment.changes}
            return license.apply_amendment(values)
        except ValueError as e:
            raise ValidationError(str(e))

    async def check_conflicts(self, license: License, amendment: Amendment) -> None:
        """Amended terms must not collide with other held grants; caller holds the asset lock."""
        if CONFLICT_FIELDS & set(amendment.fields_changed):
            await self.guard.ensure_clear(license, "Amended terms conflict with existing licenses")


class ProposeAmendmentHandler(_AmendmentHandler):
    """Handler for ProposeAmendmentCommand."""

    async def approvers_for(self, license: License, actor: Actor) -> List[Tuple[str, Role]]:
        """Counter-parties of the proposer, after checking the proposer's standing."""
        if actor.role == Role.BRAND:
            if not await self.access.is_brand_owner(license, actor):
                raise LicensePermissionError("Only the brand owner can propose amendments")
            return [(uid, Role.CREATOR) for uid in await self.access.owner_user_ids(license.ip_asset_id)]
        if actor.role == Role.CREATOR:
            if not await self.access.is_asset_owner(license.ip_asset_id, actor):
                raise LicensePermissionError("Only IP owners can propose amendments")
            brand_owner = await self.access.brand_owner_id(license.brand_id)
            return [(brand_owner, Role.BRAND)] if brand_owner else []
        if actor.role in (Role.ADMIN, Role.SYSTEM):
            raise LicensePermissionError("Amendments must be proposed by the brand or an IP owner")
        raise ValueError(f"Unhandled role: {actor.role}")

    @staticmethod
    def diff(license: License, changes: Dict[str, Any]) -> List[FieldChange]:
        result = []
        for name, raw in changes.items():
            try:
                after = field_to_json(name, field_from_json(name, raw))
            except ValueError as e:
                raise ValidationError(str(e))
            before = field_to_json(name, getattr(license, name))
            if before != after:
                result.append(FieldChange(field=name, before=before, after=after))
        return result

    async def handle(self, command: ProposeAmendmentCommand) -> AmendmentResultDTO:
        """
        Handle propose amendment command.

        Args:
            command: ProposeAmendmentCommand

        Returns:
            AmendmentResultDTO with the PROPOSED amendment

        Raises:
            LicenseNotFoundError: If license not found
            LicensePermissionError: Proposer is not a party
            ValidationError: License not amendable or changes invalid
            ConflictError: Amended terms collide with existing grants
        """
        actor = command.actor
        if not command.justification or not command.justification.strip():
            raise ValidationError("A justification is required")
        async with self.atomic():
            license = await lock_license_and_asset(
                self.license_repository, self.asset_repository, command.license_id
            )
            ensure_amendable(license)
            approvers = await self.approvers_for(license, actor)
            if not approvers:
                raise ValidationError("License has no counter-party to approve the amendment")

            changes = self.diff(license, command.changes)
            if not changes:
                raise ValidationError("Amendment does not change any field")
            previous = await self.amendment_repository.find_by_license(license.id)
            number = previous[0].amendment_number + 1 if previous else 1
            amendment = Amendment.propose(
                license_id=license.id,
                amendment_number=number,
                proposed_by=actor.user_id,
                proposed_by_role=actor.role,
                amendment_type=command.amendment_type,
                justification=command.justification.strip(),
                changes=changes,
                approvers=approvers,
                approval_deadline=utc_now() + timedelta(days=self.policy.amendment_deadline_days),
            )
            await self.check_conflicts(self.apply(license, amendment), amendment)

            saved = await self.amendment_repository.save(amendment)
            await self.audit_repository.record(
                AuditEntry(
                    entity_type="amendment",
                    entity_id=saved.id,
                    action="proposed",
                    actor=actor.user_id,
                    brand_id=license.brand_id,
                    changes={"license_id": str(license.id), "changes": [c.to_dict() for c in changes]},
                )
            )

        amendments_total.labels(outcome="proposed").inc()
        logger.info(
            "Amendment #%d proposed on license %s by %s (%s)",
            saved.amendment_number,
            license.id,
            actor,
            ", ".join(saved.fields_changed),
        )
        await self.event_bus.publish(
            AmendmentProposed(
                amendment_id=saved.id,
                license_id=license.id,
                amendment_number=saved.amendment_number,
                proposed_by=actor.user_id,
                approver_ids=[a.approver_id for a in saved.approvals],
                fields_changed=saved.fields_changed,
            )
        )
        return AmendmentResultDTO(
            amendment=AmendmentDTO.from_entity(saved),
            remaining_approvals=saved.remaining_approvals,
        )


class ProcessAmendmentApprovalHandler(_AmendmentHandler):
    """Handler for ProcessAmendmentApprovalCommand."""

    async def handle(self, command: ProcessAmendmentApprovalCommand) -> AmendmentResultDTO:
        """
        Record one approver's decision and recompute the amendment.

        Any rejection rejects the amendment; the last approval applies it
        to the license.

        Raises:
            AmendmentNotFoundError: If amendment not found
            LicensePermissionError: Actor is not an approver
            ValidationError: Amendment not pending, expired or already decided by the actor
            ConflictError: Final approval would apply terms that collide with a held grant
        """
        actor = command.actor
        expired = False
        license = None
        found = await load_amendment(self.amendment_repository, command.amendment_id)
        async with self.atomic():
            # Asset, license, then the amendment: the order the proposal locks in.
            current = await lock_license_and_asset(
                self.license_repository, self.asset_repository, found.license_id
            )
            amendment = await load_amendment(
                self.amendment_repository, command.amendment_id, for_update=True
            )
            if amendment.status != AmendmentStatus.PROPOSED:
                raise ValidationError("Amendment is not pending approval")
            record = amendment.approval_for(actor.user_id)
            if record is None:
                raise LicensePermissionError("You are not an approver of this amendment")
            if record.status != ApprovalStatus.PENDING:
                raise ValidationError("You have already responded to this amendment")

            if amendment.is_overdue(utc_now()):
                amendment = await self.amendment_repository.save(amendment.expire())
                expired = True
            else:
                amendment = amendment.with_approval(record.decide(command.approve, command.comments))
                if amendment.status == AmendmentStatus.APPROVED:
                    ensure_amendable(current)
                    amended = self.apply(current, amendment)
                    await self.check_conflicts(amended, amendment)
                    license = await self.license_repository.save(amended)
                    await self.audit_repository.record(
                        AuditEntry(
                            entity_type="license",
                            entity_id=license.id,
                            action="amended",
                            actor=actor.user_id,
                            brand_id=license.brand_id,
                            changes={
                                "amendment_id": str(amendment.id),
                                "changes": [c.to_dict() for c in amendment.changes],
                            },
                        )
                    )
                amendment = await self.amendment_repository.save(amendment)
                await self.audit_repository.record(
                    AuditEntry(
                        entity_type="amendment",
                        entity_id=amendment.id,
                        action="approved" if command.approve else "rejected",
                        actor=actor.user_id,
                        brand_id=current.brand_id,
                        changes={"comments": command.comments, "status": amendment.status.value},
                    )
                )

        if expired:
            amendments_total.labels(outcome="expired").inc()
            await self.event_bus.publish(decided_event(amendment))
            raise ValidationError("Amendment approval deadline has passed")

        logger.info(
            "Amendment %s %s by %s; status %s, %d approval(s) remaining",
            amendment.id,
            "approved" if command.approve else "rejected",
            actor,
            amendment.status.value,
            amendment.remaining_approvals,
        )
        if amendment.status != AmendmentStatus.PROPOSED:
            amendments_total.labels(outcome=amendment.status.value.lower()).inc()
            await self.event_bus.publish(decided_event(amendment))
        if license is not None:
            await self.preview_service.invalidate(license.ip_asset_id)
        return AmendmentResultDTO(
            amendment=AmendmentDTO.from_entity(amendment),
            remaining_approvals=amendment.remaining_approvals,
            license=LicenseDTO.from_entity(license) if license else None,
        )
