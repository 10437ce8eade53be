"""
Amendment aggregate.

An amendment proposes field-level changes to an in-force license. It
binds only once every required counter-party approves; a single
rejection voids it.
"""
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from core.domain.clock import utc_now
from core.domain.value_objects import Role
from licenses.domain.license import AMENDABLE_FIELDS
from licenses.domain.scope import LicenseScope


class AmendmentType(Enum):
    """Kind of change being proposed."""

    FINANCIAL = "FINANCIAL"
    SCOPE = "SCOPE"
    DATES = "DATES"
    OTHER = "OTHER"

    def __str__(self) -> str:
        return self.value


class AmendmentStatus(Enum):
    """Aggregate state of an amendment."""

    PROPOSED = "PROPOSED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    def __str__(self) -> str:
        return self.value


class ApprovalStatus(Enum):
    """State of one approver's decision."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FieldChange:
    """Before/after value of one amended field (JSON-compatible values)."""

    field: str
    before: Any
    after: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "before": self.before, "after": self.after}


@dataclass(frozen=True)
class ApprovalRecord:
    """A single counter-party's decision on an amendment."""

    id: uuid.UUID
    amendment_id: uuid.UUID
    approver_id: str
    approver_role: Role
    status: ApprovalStatus = ApprovalStatus.PENDING
    comments: Optional[str] = None
    decided_at: Optional[datetime] = None

    def decide(self, approved: bool, comments: Optional[str] = None) -> "ApprovalRecord":
        if self.status != ApprovalStatus.PENDING:
            raise ValueError("Approval has already been recorded")
        return replace(
            self,
            status=ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED,
            comments=comments,
            decided_at=utc_now(),
        )


@dataclass(frozen=True)
class Amendment:
    """
    Proposed change set on a license, with one approval per counter-party.

    ``approvals`` always holds the full set created with the proposal.
    """

    id: uuid.UUID
    license_id: uuid.UUID
    amendment_number: int
    proposed_by: str
    proposed_by_role: Role
    amendment_type: AmendmentType
    justification: str
    changes: Tuple[FieldChange, ...]
    status: AmendmentStatus
    approval_deadline: datetime
    proposed_at: datetime
    approvals: Tuple[ApprovalRecord, ...] = ()
    decided_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    def __post_init__(self):
        """Validate amendment."""
        if self.amendment_number < 1:
            raise ValueError("Amendment number must be positive")
        if not self.changes:
            raise ValueError("An amendment must change at least one field")
        fields_seen = [c.field for c in self.changes]
        if len(fields_seen) != len(set(fields_seen)):
            raise ValueError("Each field may appear only once in an amendment")

    @classmethod
    def propose(
        cls,
        license_id: uuid.UUID,
        amendment_number: int,
        proposed_by: str,
        proposed_by_role: Role,
        amendment_type: AmendmentType,
        justification: str,
        changes: List[FieldChange],
        approvers: List[Tuple[str, Role]],
        approval_deadline: datetime,
    ) -> "Amendment":
        """Create a PROPOSED amendment with a pending approval per approver."""
        if not approvers:
            raise ValueError("An amendment needs at least one approver")
        amendment_id = uuid.uuid4()
        approvals = tuple(
            ApprovalRecord(
                id=uuid.uuid4(),
                amendment_id=amendment_id,
                approver_id=approver_id,
                approver_role=role,
            )
            for approver_id, role in dict.fromkeys(approvers)
        )
        return cls(
            id=amendment_id,
            license_id=license_id,
            amendment_number=amendment_number,
            proposed_by=proposed_by,
            proposed_by_role=proposed_by_role,
            amendment_type=amendment_type,
            justification=justification,
            changes=tuple(changes),
            status=AmendmentStatus.PROPOSED,
            approval_deadline=approval_deadline,
            proposed_at=utc_now(),
            approvals=approvals,
        )

    @property
    def fields_changed(self) -> List[str]:
        return [c.field for c in self.changes]

    @property
    def remaining_approvals(self) -> int:
        return sum(1 for a in self.approvals if a.status == ApprovalStatus.PENDING)

    def approval_for(self, approver_id: str) -> Optional[ApprovalRecord]:
        for approval in self.approvals:
            if approval.approver_id == approver_id:
                return approval
        return None

    def is_overdue(self, now: datetime) -> bool:
        return self.status == AmendmentStatus.PROPOSED and self.approval_deadline < now

    def with_approval(self, record: ApprovalRecord) -> "Amendment":
        """
        Replace one approval record and recompute the aggregate status.

        Any rejection rejects the amendment; unanimous approval approves it.
        """
        approvals = tuple(record if a.id == record.id else a for a in self.approvals)
        statuses = {a.status for a in approvals}
        status = AmendmentStatus.PROPOSED
        decided_at = None
        rejection_reason = None
        if ApprovalStatus.REJECTED in statuses:
            status = AmendmentStatus.REJECTED
            decided_at = utc_now()
            rejection_reason = record.comments if record.status == ApprovalStatus.REJECTED else None
        elif statuses == {ApprovalStatus.APPROVED}:
            status = AmendmentStatus.APPROVED
            decided_at = utc_now()
        return replace(
            self,
            approvals=approvals,
            status=status,
            decided_at=decided_at,
            rejection_reason=rejection_reason,
        )

    def expire(self, now: Optional[datetime] = None) -> "Amendment":
        """Reject an amendment whose deadline passed without a decision."""
        return replace(
            self,
            status=AmendmentStatus.REJECTED,
            decided_at=now or utc_now(),
            rejection_reason="expired",
        )


def field_to_json(field_name: str, value: Any) -> Any:
    """JSON form of an amendable license field value."""
    if field_name == "scope":
        return value.to_dict()
    if field_name == "end_date":
        return value.isoformat()
    return value


def field_from_json(field_name: str, value: Any) -> Any:
    """
    Domain value of an amendable field from its JSON form.

    Raises:
        ValueError: Unknown field or malformed value
    """
    if field_name not in AMENDABLE_FIELDS:
        raise ValueError(f"Field cannot be amended: {field_name}")
    if field_name == "scope":
        if not isinstance(value, dict):
            raise ValueError("Scope must be an object")
        return LicenseScope.from_dict(value)
    if field_name == "end_date":
        if isinstance(value, datetime):
            return value
        parsed = datetime.fromisoformat(str(value))
        if parsed.tzinfo is None:
            raise ValueError("End date must include a timezone")
        return parsed
    if field_name in ("fee_cents", "rev_share_bps"):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{field_name} must be an integer")
        return value
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value
