"""
License read queries.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from core.domain.value_objects import Actor, LicenseStatus


@dataclass
class GetLicenseQuery:
    """Query a single license."""

    license_id: uuid.UUID
    actor: Actor


@dataclass
class ListLicensesQuery:
    """Query licenses by brand, asset and status."""

    actor: Actor
    brand_id: Optional[uuid.UUID] = None
    ip_asset_id: Optional[uuid.UUID] = None
    status: Optional[LicenseStatus] = None


@dataclass
class GetStatusHistoryQuery:
    """Query a license's status history."""

    license_id: uuid.UUID
    actor: Actor


@dataclass
class GetStatusDistributionQuery:
    """Query license counts per status."""

    actor: Actor
    brand_id: Optional[uuid.UUID] = None


@dataclass
class VerifySignatureQuery:
    """Query whether a license's signature proof still matches its terms."""

    license_id: uuid.UUID
    actor: Actor
