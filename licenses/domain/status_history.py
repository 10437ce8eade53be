"""
Status history entry.

Append-only record written for every license status change.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.domain.clock import utc_now
from core.domain.value_objects import LicenseStatus


@dataclass(frozen=True)
class StatusHistoryEntry:
    """One transition of a license between two statuses."""

    id: uuid.UUID
    license_id: uuid.UUID
    from_status: LicenseStatus
    to_status: LicenseStatus
    transitioned_by: str
    transitioned_at: datetime
    reason: Optional[str] = None
    automated: bool = False

    def __post_init__(self):
        if self.from_status == self.to_status:
            raise ValueError("A status history entry must change the status")
        if not self.transitioned_by:
            raise ValueError("transitioned_by is required")

    @classmethod
    def record(
        cls,
        license_id: uuid.UUID,
        from_status: LicenseStatus,
        to_status: LicenseStatus,
        transitioned_by: str,
        reason: Optional[str] = None,
        automated: bool = False,
        at: Optional[datetime] = None,
    ) -> "StatusHistoryEntry":
        return cls(
            id=uuid.uuid4(),
            license_id=license_id,
            from_status=from_status,
            to_status=to_status,
            transitioned_by=transitioned_by,
            transitioned_at=at or utc_now(),
            reason=reason,
            automated=automated,
        )
