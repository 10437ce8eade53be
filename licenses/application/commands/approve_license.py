"""
Approval and signature commands.
"""
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.domain.value_objects import Actor


class ApprovalAction(Enum):
    """What an approver does with a license awaiting approval."""

    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"

    def __str__(self) -> str:
        return self.value


@dataclass
class ProcessLicenseApprovalCommand:
    """Command to approve, reject or send back a license."""

    license_id: uuid.UUID
    actor: Actor
    action: ApprovalAction
    comments: Optional[str] = None


@dataclass
class SignLicenseCommand:
    """Command to sign a license awaiting signature."""

    license_id: uuid.UUID
    actor: Actor
