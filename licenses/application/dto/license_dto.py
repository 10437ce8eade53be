"""
License DTOs for API responses.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from licenses.domain.amendment import Amendment, ApprovalRecord
from licenses.domain.extension import Extension
from licenses.domain.license import License
from licenses.domain.status_history import StatusHistoryEntry


@dataclass
class LicenseDTO:
    """DTO for license information."""

    id: uuid.UUID
    ip_asset_id: uuid.UUID
    brand_id: uuid.UUID
    project_id: Optional[uuid.UUID]
    parent_license_id: Optional[uuid.UUID]
    license_type: str
    status: str
    start_date: datetime
    end_date: datetime
    fee_cents: int
    rev_share_bps: int
    scope: Dict[str, Any]
    auto_renew: bool
    payment_terms: Optional[str]
    billing_frequency: Optional[str]
    signed_at: Optional[datetime]
    amendment_count: int
    metadata: Dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, license: License) -> "LicenseDTO":
        return cls(
            id=license.id,
            ip_asset_id=license.ip_asset_id,
            brand_id=license.brand_id,
            project_id=license.project_id,
            parent_license_id=license.parent_license_id,
            license_type=license.license_type.value,
            status=license.status.value,
            start_date=license.start_date,
            end_date=license.end_date,
            fee_cents=license.fee_cents,
            rev_share_bps=license.rev_share_bps,
            scope=license.scope.to_dict(),
            auto_renew=license.auto_renew,
            payment_terms=license.payment_terms,
            billing_frequency=license.billing_frequency,
            signed_at=license.signed_at,
            amendment_count=license.amendment_count,
            metadata=license.metadata.to_dict(),
            created_at=license.created_at,
            updated_at=license.updated_at,
        )


@dataclass
class CreateLicenseResultDTO:
    """DTO for create license response."""

    license: LicenseDTO
    warnings: List[str]
    approval: Dict[str, Any]
    fee_breakdown: Optional[Dict[str, Any]] = None


@dataclass
class StatusHistoryDTO:
    """DTO for one status history entry."""

    id: uuid.UUID
    license_id: uuid.UUID
    from_status: str
    to_status: str
    transitioned_by: str
    transitioned_at: datetime
    reason: Optional[str]
    automated: bool

    @classmethod
    def from_entity(cls, entry: StatusHistoryEntry) -> "StatusHistoryDTO":
        return cls(
            id=entry.id,
            license_id=entry.license_id,
            from_status=entry.from_status.value,
            to_status=entry.to_status.value,
            transitioned_by=entry.transitioned_by,
            transitioned_at=entry.transitioned_at,
            reason=entry.reason,
            automated=entry.automated,
        )


@dataclass
class ApprovalResultDTO:
    """DTO for a license approval decision."""

    license: LicenseDTO
    action: str
    outstanding: List[str] = field(default_factory=list)


@dataclass
class SignatureResultDTO:
    """DTO for a signing step."""

    license: LicenseDTO
    fully_executed: bool
    remaining_signers: List[str] = field(default_factory=list)


@dataclass
class SignatureVerificationDTO:
    """DTO for signature proof verification."""

    license_id: uuid.UUID
    valid: bool
    terms_hash: str
    signers: List[Dict[str, Any]]
    signature_proof: Optional[str]


@dataclass
class ApprovalRecordDTO:
    """DTO for one amendment approval record."""

    id: uuid.UUID
    approver_id: str
    approver_role: str
    status: str
    comments: Optional[str]
    decided_at: Optional[datetime]

    @classmethod
    def from_entity(cls, record: ApprovalRecord) -> "ApprovalRecordDTO":
        return cls(
            id=record.id,
            approver_id=record.approver_id,
            approver_role=record.approver_role.value,
            status=record.status.value,
            comments=record.comments,
            decided_at=record.decided_at,
        )


@dataclass
class AmendmentDTO:
    """DTO for an amendment."""

    id: uuid.UUID
    license_id: uuid.UUID
    amendment_number: int
    amendment_type: str
    status: str
    proposed_by: str
    proposed_by_role: str
    justification: str
    changes: List[Dict[str, Any]]
    approval_deadline: datetime
    proposed_at: datetime
    decided_at: Optional[datetime]
    rejection_reason: Optional[str]
    approvals: List[ApprovalRecordDTO]

    @classmethod
    def from_entity(cls, amendment: Amendment) -> "AmendmentDTO":
        return cls(
            id=amendment.id,
            license_id=amendment.license_id,
            amendment_number=amendment.amendment_number,
            amendment_type=amendment.amendment_type.value,
            status=amendment.status.value,
            proposed_by=amendment.proposed_by,
            proposed_by_role=amendment.proposed_by_role.value,
            justification=amendment.justification,
            changes=[c.to_dict() for c in amendment.changes],
            approval_deadline=amendment.approval_deadline,
            proposed_at=amendment.proposed_at,
            decided_at=amendment.decided_at,
            rejection_reason=amendment.rejection_reason,
            approvals=[ApprovalRecordDTO.from_entity(a) for a in amendment.approvals],
        )


@dataclass
class AmendmentResultDTO:
    """DTO for amendment proposal and approval responses."""

    amendment: AmendmentDTO
    remaining_approvals: int
    license: Optional[LicenseDTO] = None


@dataclass
class AmendmentHistoryItemDTO:
    """DTO for one applied field change."""

    amendment_id: uuid.UUID
    amendment_number: int
    field: str
    before: Any
    after: Any
    decided_at: Optional[datetime]


@dataclass
class ExtensionDTO:
    """DTO for an extension request."""

    id: uuid.UUID
    license_id: uuid.UUID
    requested_by: str
    original_end_date: datetime
    new_end_date: datetime
    extension_days: int
    additional_fee_cents: int
    justification: str
    approval_required: bool
    status: str
    requested_at: datetime
    respond_by: datetime
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    rejected_by: Optional[str]
    rejected_at: Optional[datetime]
    rejection_reason: Optional[str]

    @classmethod
    def from_entity(cls, extension: Extension) -> "ExtensionDTO":
        return cls(
            id=extension.id,
            license_id=extension.license_id,
            requested_by=extension.requested_by,
            original_end_date=extension.original_end_date,
            new_end_date=extension.new_end_date,
            extension_days=extension.extension_days,
            additional_fee_cents=extension.additional_fee_cents,
            justification=extension.justification,
            approval_required=extension.approval_required,
            status=extension.status.value,
            requested_at=extension.requested_at,
            respond_by=extension.respond_by,
            approved_by=extension.approved_by,
            approved_at=extension.approved_at,
            rejected_by=extension.rejected_by,
            rejected_at=extension.rejected_at,
            rejection_reason=extension.rejection_reason,
        )


@dataclass
class ExtensionResultDTO:
    """DTO for extension request and approval responses."""

    extension: ExtensionDTO
    auto_approved: bool = False
    license: Optional[LicenseDTO] = None


@dataclass
class ExtensionAnalyticsDTO:
    """DTO for extension statistics."""

    total: int
    approved: int
    rejected: int
    pending: int
    average_extension_days: float
    total_additional_fees_cents: int


@dataclass
class RenewalOfferResultDTO:
    """DTO for a generated renewal offer."""

    license_id: uuid.UUID
    offer_id: str
    offer: Dict[str, Any]
    pricing: Dict[str, Any]


@dataclass
class SweepResultDTO:
    """DTO for a sweep run."""

    processed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    details: Dict[str, int] = field(default_factory=dict)

    def add_error(self, entity_id: Any, error: Exception) -> None:
        self.errors.append({"id": str(entity_id), "error": str(error)})

    def count(self, key: str) -> None:
        self.details[key] = self.details.get(key, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {"processed": self.processed, "errors": list(self.errors), "details": dict(self.details)}


@dataclass
class FeeQuoteDTO:
    """DTO for a fee quote."""

    breakdown: Dict[str, Any]
    suggested_rev_share_bps: int
    total_value: Dict[str, Any]
