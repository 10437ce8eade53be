"""
Conflict, validation and pricing queries (no side effects).
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.domain.value_objects import AssetType, LicenseType
from licenses.domain.scope import LicenseScope


@dataclass
class CheckConflictsQuery:
    """Query conflicts of a proposed grant."""

    ip_asset_id: uuid.UUID
    start_date: datetime
    end_date: datetime
    license_type: LicenseType
    scope: LicenseScope
    brand_id: Optional[uuid.UUID] = None
    rev_share_bps: int = 0
    exclude_license_id: Optional[uuid.UUID] = None


@dataclass
class GetConflictPreviewQuery:
    """Query what is already committed on an asset."""

    ip_asset_id: uuid.UUID


@dataclass
class ValidateLicenseQuery:
    """Query the validation pipeline for proposed terms."""

    ip_asset_id: uuid.UUID
    brand_id: uuid.UUID
    license_type: LicenseType
    start_date: datetime
    end_date: datetime
    scope: LicenseScope
    fee_cents: int = 0
    rev_share_bps: int = 0
    collect_all: bool = True
    exclude_license_id: Optional[uuid.UUID] = None


@dataclass
class CalculateFeeQuery:
    """Query a fee quote."""

    ip_asset_id: uuid.UUID
    brand_id: uuid.UUID
    license_type: LicenseType
    start_date: datetime
    end_date: datetime
    scope: LicenseScope
    asset_type: Optional[AssetType] = None
    rev_share_bps: Optional[int] = None
    projected_revenue_cents: Optional[int] = None
