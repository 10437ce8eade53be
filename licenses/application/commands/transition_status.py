"""
Status change commands.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from core.domain.value_objects import Actor, LicenseStatus


@dataclass
class TransitionStatusCommand:
    """Command to move a license to another status."""

    license_id: uuid.UUID
    to_status: LicenseStatus
    actor: Actor
    reason: Optional[str] = None
    automated: bool = False


@dataclass
class SubmitLicenseCommand:
    """Command to submit a DRAFT license for approval."""

    license_id: uuid.UUID
    actor: Actor


@dataclass
class TerminateLicenseCommand:
    """Command to terminate an in-force license."""

    license_id: uuid.UUID
    actor: Actor
    reason: str
