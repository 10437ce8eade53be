"""
Amendment, extension and renewal queries.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from core.domain.value_objects import Actor


@dataclass
class GetAmendmentsQuery:
    """Query the amendments of a license."""

    license_id: uuid.UUID
    actor: Actor


@dataclass
class GetPendingAmendmentsQuery:
    """Query amendments waiting for the actor's decision."""

    actor: Actor


@dataclass
class GetExtensionsQuery:
    """Query the extension requests of a license."""

    license_id: uuid.UUID
    actor: Actor


@dataclass
class GetPendingExtensionsQuery:
    """Query extension requests the actor can decide on."""

    actor: Actor


@dataclass
class GetExtensionAnalyticsQuery:
    """Query extension statistics, optionally for one brand."""

    actor: Actor
    brand_id: Optional[uuid.UUID] = None


@dataclass
class CheckRenewalEligibilityQuery:
    """Query whether a license can be renewed."""

    license_id: uuid.UUID
    actor: Actor
