"""
Typed sub-records owned by the License aggregate.

Signatures, approval history, renewal offers and conflict snapshots are
persisted together in the license's metadata column but handled in the
domain as explicit frozen records.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from core.domain.value_objects import Role


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class OfferStatus(Enum):
    """Lifecycle of a renewal offer."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SignatureRecord:
    """One party's execution of the license terms."""

    user_id: str
    role: Role
    signed_at: datetime
    terms_hash: str

    def proof_token(self) -> str:
        return f"{self.user_id}:{self.role.value}:{self.signed_at.isoformat()}:{self.terms_hash}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "role": self.role.value,
            "signed_at": _iso(self.signed_at),
            "terms_hash": self.terms_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignatureRecord":
        return cls(
            user_id=data["user_id"],
            role=Role(data["role"]),
            signed_at=_dt(data["signed_at"]),
            terms_hash=data["terms_hash"],
        )


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """A decision taken on a license awaiting approval."""

    user_id: str
    role: Role
    action: str
    previous_status: str
    new_status: str
    at: datetime
    comments: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "role": self.role.value,
            "action": self.action,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "at": _iso(self.at),
            "comments": self.comments,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApprovalHistoryEntry":
        return cls(
            user_id=data["user_id"],
            role=Role(data["role"]),
            action=data["action"],
            previous_status=data["previous_status"],
            new_status=data["new_status"],
            at=_dt(data["at"]),
            comments=data.get("comments"),
        )


@dataclass(frozen=True)
class ApprovalRequirementRecord:
    """Approvals computed for a license when it was created."""

    requires_admin: bool = False
    requires_creator: bool = True
    reasons: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requires_admin": self.requires_admin,
            "requires_creator": self.requires_creator,
            "reasons": list(self.reasons),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApprovalRequirementRecord":
        return cls(
            requires_admin=bool(data.get("requires_admin", False)),
            requires_creator=bool(data.get("requires_creator", True)),
            reasons=tuple(data.get("reasons") or ()),
        )


@dataclass(frozen=True)
class ConflictSnapshot:
    """Validation outcome captured when the license was created."""

    checked_at: datetime
    warnings: Tuple[str, ...] = ()
    conflicting_license_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked_at": _iso(self.checked_at),
            "warnings": list(self.warnings),
            "conflicting_license_ids": list(self.conflicting_license_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConflictSnapshot":
        return cls(
            checked_at=_dt(data["checked_at"]),
            warnings=tuple(data.get("warnings") or ()),
            conflicting_license_ids=tuple(data.get("conflicting_license_ids") or ()),
        )


@dataclass(frozen=True)
class ExpiryNoticeRecord:
    """A staged expiry notice sent for one end date."""

    days_before: int
    urgency: str
    end_date: datetime
    sent_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "days_before": self.days_before,
            "urgency": self.urgency,
            "end_date": _iso(self.end_date),
            "sent_at": _iso(self.sent_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpiryNoticeRecord":
        return cls(
            days_before=int(data["days_before"]),
            urgency=data["urgency"],
            end_date=_dt(data["end_date"]),
            sent_at=_dt(data["sent_at"]),
        )


@dataclass(frozen=True)
class PricingAdjustment:
    """A single line of a renewal price derivation."""

    type: str
    label: str
    amount_cents: int
    percent_change: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "label": self.label,
            "amount_cents": self.amount_cents,
            "percent_change": self.percent_change,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PricingAdjustment":
        return cls(
            type=data["type"],
            label=data["label"],
            amount_cents=int(data["amount_cents"]),
            percent_change=float(data["percent_change"]),
            reason=data["reason"],
        )


@dataclass(frozen=True)
class RenewalTerms:
    """Terms proposed for the successor license."""

    duration_days: int
    fee_cents: int
    rev_share_bps: int
    start_date: datetime
    end_date: datetime
    original_fee_cents: int
    strategy: str
    confidence: int
    adjustments: Tuple[PricingAdjustment, ...] = ()
    reasoning: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration_days": self.duration_days,
            "fee_cents": self.fee_cents,
            "rev_share_bps": self.rev_share_bps,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "original_fee_cents": self.original_fee_cents,
            "strategy": self.strategy,
            "confidence": self.confidence,
            "adjustments": [a.to_dict() for a in self.adjustments],
            "reasoning": list(self.reasoning),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenewalTerms":
        return cls(
            duration_days=int(data["duration_days"]),
            fee_cents=int(data["fee_cents"]),
            rev_share_bps=int(data["rev_share_bps"]),
            start_date=_dt(data["start_date"]),
            end_date=_dt(data["end_date"]),
            original_fee_cents=int(data["original_fee_cents"]),
            strategy=data["strategy"],
            confidence=int(data["confidence"]),
            adjustments=tuple(PricingAdjustment.from_dict(a) for a in data.get("adjustments") or ()),
            reasoning=tuple(data.get("reasoning") or ()),
        )


@dataclass(frozen=True)
class RenewalOfferRecord:
    """A renewal offer embedded on the license it would renew."""

    id: str
    status: OfferStatus
    terms: RenewalTerms
    created_at: datetime
    expires_at: datetime
    created_by: str
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    renewal_license_id: Optional[str] = None
    reminder_sent_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now

    def needs_reminder(self, now: datetime, within_days: int) -> bool:
        """Pending, unexpired, unreminded and expiring inside the reminder window."""
        return (
            self.status == OfferStatus.PENDING
            and self.reminder_sent_at is None
            and now <= self.expires_at <= now + timedelta(days=within_days)
        )

    def decide(
        self,
        status: OfferStatus,
        at: datetime,
        by: Optional[str] = None,
        renewal_license_id: Optional[str] = None,
    ) -> "RenewalOfferRecord":
        return replace(
            self,
            status=status,
            decided_at=at,
            decided_by=by,
            renewal_license_id=renewal_license_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "terms": self.terms.to_dict(),
            "created_at": _iso(self.created_at),
            "expires_at": _iso(self.expires_at),
            "created_by": self.created_by,
            "decided_at": _iso(self.decided_at),
            "decided_by": self.decided_by,
            "renewal_license_id": self.renewal_license_id,
            "reminder_sent_at": _iso(self.reminder_sent_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenewalOfferRecord":
        return cls(
            id=data["id"],
            status=OfferStatus(data["status"]),
            terms=RenewalTerms.from_dict(data["terms"]),
            created_at=_dt(data["created_at"]),
            expires_at=_dt(data["expires_at"]),
            created_by=data["created_by"],
            decided_at=_dt(data.get("decided_at")),
            decided_by=data.get("decided_by"),
            renewal_license_id=data.get("renewal_license_id"),
            reminder_sent_at=_dt(data.get("reminder_sent_at")),
        )


@dataclass(frozen=True)
class RenewalOrigin:
    """Where a renewal license came from."""

    renewed_from: str
    offer_id: str
    adjustments: Tuple[PricingAdjustment, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "renewed_from": self.renewed_from,
            "offer_id": self.offer_id,
            "adjustments": [a.to_dict() for a in self.adjustments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenewalOrigin":
        return cls(
            renewed_from=data["renewed_from"],
            offer_id=data["offer_id"],
            adjustments=tuple(PricingAdjustment.from_dict(a) for a in data.get("adjustments") or ()),
        )


@dataclass(frozen=True)
class LicenseMetadata:
    """All sub-records carried by a license."""

    signatures: Tuple[SignatureRecord, ...] = ()
    approval_history: Tuple[ApprovalHistoryEntry, ...] = ()
    approval_requirements: ApprovalRequirementRecord = field(
        default_factory=ApprovalRequirementRecord
    )
    conflict_snapshot: Optional[ConflictSnapshot] = None
    renewal_offers: Tuple[RenewalOfferRecord, ...] = ()
    renewal_origin: Optional[RenewalOrigin] = None
    terms_hash: Optional[str] = None
    signature_proof: Optional[str] = None
    termination_reason: Optional[str] = None
    expiry_notices: Tuple[ExpiryNoticeRecord, ...] = ()
    grace_period_ends_at: Optional[datetime] = None

    def notice_sent(self, days_before: int, end_date: datetime) -> bool:
        """Whether the stage already went out for this end date."""
        return any(
            n.days_before == days_before and n.end_date == end_date for n in self.expiry_notices
        )

    def find_offer(self, offer_id: str) -> Optional[RenewalOfferRecord]:
        for offer in self.renewal_offers:
            if offer.id == offer_id:
                return offer
        return None

    def with_offer(self, offer: RenewalOfferRecord) -> "LicenseMetadata":
        """Insert or replace an offer by id."""
        others = tuple(o for o in self.renewal_offers if o.id != offer.id)
        return replace(self, renewal_offers=others + (offer,))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signatures": [s.to_dict() for s in self.signatures],
            "approval_history": [e.to_dict() for e in self.approval_history],
            "approval_requirements": self.approval_requirements.to_dict(),
            "conflict_snapshot": (
                self.conflict_snapshot.to_dict() if self.conflict_snapshot else None
            ),
            "renewal_offers": [o.to_dict() for o in self.renewal_offers],
            "renewal_origin": self.renewal_origin.to_dict() if self.renewal_origin else None,
            "terms_hash": self.terms_hash,
            "signature_proof": self.signature_proof,
            "termination_reason": self.termination_reason,
            "expiry_notices": [n.to_dict() for n in self.expiry_notices],
            "grace_period_ends_at": _iso(self.grace_period_ends_at),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LicenseMetadata":
        if not data:
            return cls()
        snapshot = data.get("conflict_snapshot")
        origin = data.get("renewal_origin")
        return cls(
            signatures=tuple(SignatureRecord.from_dict(s) for s in data.get("signatures") or ()),
            approval_history=tuple(
                ApprovalHistoryEntry.from_dict(e) for e in data.get("approval_history") or ()
            ),
            approval_requirements=ApprovalRequirementRecord.from_dict(
                data.get("approval_requirements") or {}
            ),
            conflict_snapshot=ConflictSnapshot.from_dict(snapshot) if snapshot else None,
            renewal_offers=tuple(
                RenewalOfferRecord.from_dict(o) for o in data.get("renewal_offers") or ()
            ),
            renewal_origin=RenewalOrigin.from_dict(origin) if origin else None,
            terms_hash=data.get("terms_hash"),
            signature_proof=data.get("signature_proof"),
            termination_reason=data.get("termination_reason"),
            expiry_notices=tuple(
                ExpiryNoticeRecord.from_dict(n) for n in data.get("expiry_notices") or ()
            ),
            grace_period_ends_at=_dt(data.get("grace_period_ends_at")),
        )
