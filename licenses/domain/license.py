"""
License domain entity.

A license is a time-bounded grant for a brand to use an IP asset under a
defined scope. It is immutable; every change produces a new instance.
"""
import hashlib
import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

from core.domain.clock import days_between, utc_now
from core.domain.value_objects import LicenseStatus, LicenseType
from licenses.domain.metadata import LicenseMetadata
from licenses.domain.scope import LicenseScope

MAX_BPS = 10000

# Fields an approved amendment may change.
AMENDABLE_FIELDS = (
    "fee_cents",
    "rev_share_bps",
    "scope",
    "end_date",
    "payment_terms",
    "billing_frequency",
)


@dataclass(frozen=True)
class License:
    """
    License domain entity.

    Carries identity, commercial terms, lifecycle state and the typed
    metadata sub-records (signatures, offers, approval history).
    """

    id: uuid.UUID
    ip_asset_id: uuid.UUID
    brand_id: uuid.UUID
    license_type: LicenseType
    status: LicenseStatus
    start_date: datetime
    end_date: datetime
    fee_cents: int
    rev_share_bps: int
    scope: LicenseScope
    created_at: datetime
    updated_at: datetime
    auto_renew: bool = False
    payment_terms: Optional[str] = None
    billing_frequency: Optional[str] = None
    project_id: Optional[uuid.UUID] = None
    parent_license_id: Optional[uuid.UUID] = None
    signed_at: Optional[datetime] = None
    amendment_count: int = 0
    metadata: LicenseMetadata = field(default_factory=LicenseMetadata)
    created_by: Optional[str] = None
    deleted_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate license entity."""
        if not self.ip_asset_id:
            raise ValueError("IP asset ID is required")
        if not self.brand_id:
            raise ValueError("Brand ID is required")
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if self.fee_cents < 0:
            raise ValueError("Fee cannot be negative")
        if not 0 <= self.rev_share_bps <= MAX_BPS:
            raise ValueError("Revenue share must be between 0 and 10000 basis points")
        if self.amendment_count < 0:
            raise ValueError("Amendment count cannot be negative")

    @classmethod
    def create(
        cls,
        ip_asset_id: uuid.UUID,
        brand_id: uuid.UUID,
        license_type: LicenseType,
        start_date: datetime,
        end_date: datetime,
        fee_cents: int,
        rev_share_bps: int,
        scope: LicenseScope,
        auto_renew: bool = False,
        payment_terms: Optional[str] = None,
        billing_frequency: Optional[str] = None,
        project_id: Optional[uuid.UUID] = None,
        parent_license_id: Optional[uuid.UUID] = None,
        status: LicenseStatus = LicenseStatus.DRAFT,
        metadata: Optional[LicenseMetadata] = None,
        created_by: Optional[str] = None,
        license_id: Optional[uuid.UUID] = None,
    ) -> "License":
        """
        Create a new License entity.

        Args:
            ip_asset_id: Licensed asset UUID
            brand_id: Licensee brand UUID
            license_type: Exclusivity tier
            start_date: Start of the grant
            end_date: End of the grant
            fee_cents: Flat fee in cents
            rev_share_bps: Revenue share in basis points
            scope: Usage scope
            status: Initial status (DRAFT unless renewing)
            license_id: Optional UUID (generated if not provided)

        Returns:
            License entity instance
        """
        now = utc_now()
        return cls(
            id=license_id or uuid.uuid4(),
            ip_asset_id=ip_asset_id,
            brand_id=brand_id,
            license_type=license_type,
            status=status,
            start_date=start_date,
            end_date=end_date,
            fee_cents=fee_cents,
            rev_share_bps=rev_share_bps,
            scope=scope,
            created_at=now,
            updated_at=now,
            auto_renew=auto_renew,
            payment_terms=payment_terms,
            billing_frequency=billing_frequency,
            project_id=project_id,
            parent_license_id=parent_license_id,
            metadata=metadata or LicenseMetadata(),
            created_by=created_by,
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def duration_days(self) -> int:
        """Length of the grant in whole days."""
        return days_between(self.start_date, self.end_date)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Closed-interval intersection with [start, end]."""
        return self.start_date <= end and self.end_date >= start

    def with_status(self, status: LicenseStatus, at: Optional[datetime] = None) -> "License":
        """
        Return a copy in the given status.

        The first move into ACTIVE stamps ``signed_at``.
        """
        now = at or utc_now()
        signed_at = self.signed_at
        if status == LicenseStatus.ACTIVE and signed_at is None:
            signed_at = now
        return replace(self, status=status, signed_at=signed_at, updated_at=now)

    def with_metadata(self, metadata: LicenseMetadata) -> "License":
        return replace(self, metadata=metadata, updated_at=utc_now())

    def apply_amendment(self, changes: Dict[str, Any]) -> "License":
        """
        Merge approved field values and bump the amendment counter.

        Raises:
            ValueError: On an unknown field or an invalid resulting license
        """
        unknown = set(changes) - set(AMENDABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be amended: {', '.join(sorted(unknown))}")
        return replace(
            self,
            amendment_count=self.amendment_count + 1,
            updated_at=utc_now(),
            **changes,
        )

    def extend(self, new_end_date: datetime, additional_fee_cents: int) -> "License":
        """Return a copy with a later end date and increased fee."""
        if new_end_date <= self.end_date:
            raise ValueError("New end date must be after the current end date")
        return replace(
            self,
            end_date=new_end_date,
            fee_cents=self.fee_cents + additional_fee_cents,
            updated_at=utc_now(),
        )

    def summary(self) -> Dict[str, Any]:
        """Compact description used in conflict reports."""
        return {
            "id": str(self.id),
            "brand_id": str(self.brand_id),
            "license_type": self.license_type.value,
            "status": self.status.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
        }

    def terms_payload(self) -> Dict[str, Any]:
        """Canonical commercial terms, the input of the signature hash."""
        return {
            "license_id": str(self.id),
            "ip_asset_id": str(self.ip_asset_id),
            "brand_id": str(self.brand_id),
            "license_type": self.license_type.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "fee_cents": self.fee_cents,
            "rev_share_bps": self.rev_share_bps,
            "scope": self.scope.to_dict(),
            "payment_terms": self.payment_terms,
            "billing_frequency": self.billing_frequency,
        }

    def terms_hash(self) -> str:
        """SHA-256 of the canonical terms."""
        text = json.dumps(self.terms_payload(), sort_keys=True)
        return hashlib.sha256(text.encode()).hexdigest()
