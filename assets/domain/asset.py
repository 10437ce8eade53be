"""
IP asset, creator and ownership entities.

These are read-only collaborators of the licensing core: ownership is
managed elsewhere and only inspected when licenses are validated.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.domain.clock import utc_now
from core.domain.value_objects import AssetStatus, AssetType, OwnershipType

FULL_SHARE_BPS = 10000


@dataclass(frozen=True)
class IpAsset:
    """A licensable piece of intellectual property."""

    id: uuid.UUID
    title: str
    asset_type: AssetType
    status: AssetStatus
    created_at: datetime
    parent_asset_id: Optional[uuid.UUID] = None
    deleted_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValueError("Asset title cannot be empty")

    @classmethod
    def create(
        cls,
        title: str,
        asset_type: AssetType = AssetType.PHOTO,
        status: AssetStatus = AssetStatus.PUBLISHED,
        parent_asset_id: Optional[uuid.UUID] = None,
        asset_id: Optional[uuid.UUID] = None,
    ) -> "IpAsset":
        return cls(
            id=asset_id or uuid.uuid4(),
            title=title,
            asset_type=asset_type,
            status=status,
            created_at=utc_now(),
            parent_asset_id=parent_asset_id,
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class Creator:
    """A creator account that can hold ownership shares."""

    id: uuid.UUID
    user_id: str
    display_name: str
    is_active: bool = True
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class Ownership:
    """A creator's share of an asset over a period."""

    id: uuid.UUID
    ip_asset_id: uuid.UUID
    creator: Creator
    share_bps: int
    ownership_type: OwnershipType
    start_date: datetime
    end_date: Optional[datetime] = None
    disputed: bool = False
    resolved_at: Optional[datetime] = None
    contract_reference: Optional[str] = None
    legal_doc_url: Optional[str] = None

    def __post_init__(self):
        if not 0 < self.share_bps <= FULL_SHARE_BPS:
            raise ValueError("Ownership share must be between 1 and 10000 basis points")

    @property
    def has_unresolved_dispute(self) -> bool:
        return self.disputed and self.resolved_at is None

    @property
    def has_legal_documentation(self) -> bool:
        return bool(self.contract_reference or self.legal_doc_url)

    def is_current(self, at: datetime) -> bool:
        """Whether the ownership is in force at the given moment."""
        return self.start_date <= at and (self.end_date is None or self.end_date > at)

    def covers(self, start: datetime, end: datetime) -> bool:
        """Whether the ownership is in force at any point of [start, end]."""
        return self.start_date <= end and (self.end_date is None or self.end_date >= start)
