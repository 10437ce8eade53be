"""
Extension request entity.

A narrow amendment that only pushes the end date out and adds a
pro-rated fee.
"""
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

from core.domain.clock import utc_now


class ExtensionStatus(Enum):
    """Lifecycle of an extension request."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    def __str__(self) -> str:
        return self.value


def prorated_fee(fee_cents: int, duration_days: int, extension_days: int) -> int:
    """
    Fee for extra days at the original daily rate, rounded to the nearest cent.

    A zero-length original duration is treated as one day.
    """
    daily = Decimal(fee_cents) / Decimal(max(duration_days, 1))
    return int((daily * extension_days).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Extension:
    """Request to extend a license's end date."""

    id: uuid.UUID
    license_id: uuid.UUID
    requested_by: str
    original_end_date: datetime
    new_end_date: datetime
    extension_days: int
    additional_fee_cents: int
    justification: str
    approval_required: bool
    status: ExtensionStatus
    requested_at: datetime
    respond_by: datetime
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    def __post_init__(self):
        """Validate extension."""
        if self.extension_days < 1:
            raise ValueError("Extension must be at least 1 day")
        if self.new_end_date != self.original_end_date + timedelta(days=self.extension_days):
            raise ValueError("New end date must equal original end date plus extension days")
        if self.additional_fee_cents < 0:
            raise ValueError("Additional fee cannot be negative")

    @classmethod
    def request(
        cls,
        license_id: uuid.UUID,
        requested_by: str,
        original_end_date: datetime,
        extension_days: int,
        additional_fee_cents: int,
        justification: str,
        approval_required: bool,
        respond_within_days: int,
    ) -> "Extension":
        now = utc_now()
        return cls(
            id=uuid.uuid4(),
            license_id=license_id,
            requested_by=requested_by,
            original_end_date=original_end_date,
            new_end_date=original_end_date + timedelta(days=extension_days),
            extension_days=extension_days,
            additional_fee_cents=additional_fee_cents,
            justification=justification,
            approval_required=approval_required,
            status=ExtensionStatus.PENDING,
            requested_at=now,
            respond_by=now + timedelta(days=respond_within_days),
        )

    def is_overdue(self, now: datetime) -> bool:
        return self.status == ExtensionStatus.PENDING and self.respond_by < now

    def approve(self, approved_by: str) -> "Extension":
        if self.status != ExtensionStatus.PENDING:
            raise ValueError("Extension request is not pending")
        return replace(
            self, status=ExtensionStatus.APPROVED, approved_by=approved_by, approved_at=utc_now()
        )

    def reject(self, rejected_by: str, reason: Optional[str] = None) -> "Extension":
        if self.status != ExtensionStatus.PENDING:
            raise ValueError("Extension request is not pending")
        return replace(
            self,
            status=ExtensionStatus.REJECTED,
            rejected_by=rejected_by,
            rejected_at=utc_now(),
            rejection_reason=reason or "No reason provided",
        )
