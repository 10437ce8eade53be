"""
Brand domain entity.

A brand is the licensee side of every grant. The licensing core only
reads brands: ownership of the account, verification and spend history.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from core.domain.clock import utc_now

VERIFICATION_APPROVED = "approved"


@dataclass(frozen=True)
class Brand:
    """
    Brand domain entity.

    Represents a company licensing IP assets.
    This is an immutable value object with business logic.
    """

    id: uuid.UUID
    company_name: str
    owner_user_id: str
    is_verified: bool
    verification_status: str
    is_active: bool
    total_spent_cents: int
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate brand entity."""
        if not self.company_name or len(self.company_name.strip()) == 0:
            raise ValueError("Brand name cannot be empty")
        if len(self.company_name) > 255:
            raise ValueError("Brand name too long")
        if not self.owner_user_id:
            raise ValueError("Brand owner is required")
        if self.total_spent_cents < 0:
            raise ValueError("Total spend cannot be negative")

    @classmethod
    def create(
        cls,
        company_name: str,
        owner_user_id: str,
        is_verified: bool = False,
        verification_status: str = "pending",
        total_spent_cents: int = 0,
        brand_id: Optional[uuid.UUID] = None,
    ) -> "Brand":
        """
        Create a new Brand entity.

        Args:
            company_name: Brand display name
            owner_user_id: User who controls the brand account
            is_verified: Whether the brand passed verification
            verification_status: Verification workflow status
            total_spent_cents: Historical spend on the platform
            brand_id: Optional UUID (generated if not provided)

        Returns:
            Brand entity instance
        """
        now = utc_now()
        return cls(
            id=brand_id or uuid.uuid4(),
            company_name=company_name.strip(),
            owner_user_id=owner_user_id,
            is_verified=is_verified,
            verification_status=verification_status,
            is_active=True,
            total_spent_cents=total_spent_cents,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_fully_verified(self) -> bool:
        """Verified flag set and verification workflow approved."""
        return self.is_verified and self.verification_status == VERIFICATION_APPROVED

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_user_id == user_id

    def deactivate(self) -> "Brand":
        return replace(self, is_active=False, updated_at=utc_now())
