"""
Renewal commands.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from core.domain.value_objects import Actor
from licenses.domain.renewal import RenewalStrategy


@dataclass
class GenerateRenewalOfferCommand:
    """Command to attach a renewal offer to a license."""

    license_id: uuid.UUID
    actor: Actor
    strategy: RenewalStrategy = RenewalStrategy.AUTOMATIC
    negotiated_percent: Optional[float] = None


@dataclass
class AcceptRenewalOfferCommand:
    """Command to turn a pending offer into a renewal license."""

    license_id: uuid.UUID
    offer_id: str
    actor: Actor
