"""
Django implementation of AmendmentRepository port.

An amendment and its approval rows are saved together.
"""
import uuid
from datetime import datetime
from typing import List, Optional

from asgiref.sync import sync_to_async
from django.db import transaction

from core.domain.value_objects import Role
from licenses.domain.amendment import (
    Amendment,
    AmendmentStatus,
    AmendmentType,
    ApprovalRecord,
    ApprovalStatus,
    FieldChange,
)
from licenses.infrastructure.models import AmendmentApproval, LicenseAmendment
from licenses.ports.amendment_repository import AmendmentRepository


class DjangoAmendmentRepository(AmendmentRepository):
    """Django ORM implementation of AmendmentRepository."""

    def _to_domain(self, model: LicenseAmendment) -> Amendment:
        """
        Convert Django models to an Amendment entity.

        Args:
            model: LicenseAmendment with its approvals

        Returns:
            Amendment domain entity
        """
        approvals = tuple(
            ApprovalRecord(
                id=approval.id,
                amendment_id=model.id,
                approver_id=approval.approver_id,
                approver_role=Role(approval.approver_role),
                status=ApprovalStatus(approval.status),
                comments=approval.comments,
                decided_at=approval.decided_at,
            )
            for approval in model.approvals.order_by("approver_id")
        )
        return Amendment(
            id=model.id,
            license_id=model.license_id,
            amendment_number=model.amendment_number,
            proposed_by=model.proposed_by,
            proposed_by_role=Role(model.proposed_by_role),
            amendment_type=AmendmentType(model.amendment_type),
            justification=model.justification,
            changes=tuple(
                FieldChange(field=c["field"], before=c["before"], after=c["after"]) for c in model.changes
            ),
            status=AmendmentStatus(model.status),
            approval_deadline=model.approval_deadline,
            proposed_at=model.proposed_at,
            approvals=approvals,
            decided_at=model.decided_at,
            rejection_reason=model.rejection_reason,
        )

    @sync_to_async
    def save(self, amendment: Amendment) -> Amendment:
        """
        Save an amendment and its approvals.

        Args:
            amendment: Amendment entity to save

        Returns:
            Saved amendment
        """
        with transaction.atomic():
            model, _ = LicenseAmendment.objects.update_or_create(
                id=amendment.id,
                defaults={
                    "license_id": amendment.license_id,
                    "amendment_number": amendment.amendment_number,
                    "proposed_by": amendment.proposed_by,
                    "proposed_by_role": amendment.proposed_by_role.value,
                    "amendment_type": amendment.amendment_type.value,
                    "justification": amendment.justification,
                    "changes": [c.to_dict() for c in amendment.changes],
                    "status": amendment.status.value,
                    "approval_deadline": amendment.approval_deadline,
                    "proposed_at": amendment.proposed_at,
                    "decided_at": amendment.decided_at,
                    "rejection_reason": amendment.rejection_reason,
                },
            )
            for approval in amendment.approvals:
                AmendmentApproval.objects.update_or_create(
                    id=approval.id,
                    defaults={
                        "amendment_id": amendment.id,
                        "approver_id": approval.approver_id,
                        "approver_role": approval.approver_role.value,
                        "status": approval.status.value,
                        "comments": approval.comments,
                        "decided_at": approval.decided_at,
                    },
                )
        return self._to_domain(model)

    @sync_to_async
    def find_by_id(self, amendment_id: uuid.UUID, for_update: bool = False) -> Optional[Amendment]:
        queryset = LicenseAmendment.objects.select_for_update() if for_update else LicenseAmendment.objects
        try:
            return self._to_domain(queryset.get(id=amendment_id))
        except LicenseAmendment.DoesNotExist:
            return None

    @sync_to_async
    def find_by_license(self, license_id: uuid.UUID) -> List[Amendment]:
        models = LicenseAmendment.objects.filter(license_id=license_id).order_by("-amendment_number")
        return [self._to_domain(model) for model in models]

    @sync_to_async
    def find_pending_for_approver(self, approver_id: str) -> List[Amendment]:
        models = (
            LicenseAmendment.objects.filter(
                status=AmendmentStatus.PROPOSED.value,
                approvals__approver_id=approver_id,
                approvals__status=ApprovalStatus.PENDING.value,
            )
            .distinct()
            .order_by("approval_deadline")
        )
        return [self._to_domain(model) for model in models]

    @sync_to_async
    def find_overdue(self, now: datetime) -> List[Amendment]:
        models = LicenseAmendment.objects.filter(
            status=AmendmentStatus.PROPOSED.value, approval_deadline__lt=now
        )
        return [self._to_domain(model) for model in models]
