"""
CreateLicenseCommand.

Command to validate and persist a new DRAFT license.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.domain.value_objects import Actor, LicenseType
from licenses.domain.scope import LicenseScope


@dataclass
class CreateLicenseCommand:
    """Command to create a license."""

    actor: Actor
    ip_asset_id: uuid.UUID
    brand_id: uuid.UUID
    license_type: LicenseType
    start_date: datetime
    end_date: datetime
    scope: LicenseScope
    fee_cents: Optional[int] = None
    rev_share_bps: int = 0
    auto_renew: bool = False
    payment_terms: Optional[str] = None
    billing_frequency: Optional[str] = None
    project_id: Optional[uuid.UUID] = None
