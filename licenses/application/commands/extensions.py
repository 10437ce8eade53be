"""
Extension commands.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from core.domain.value_objects import Actor


@dataclass
class RequestExtensionCommand:
    """Command to extend a license's end date."""

    license_id: uuid.UUID
    actor: Actor
    extension_days: int
    justification: str = ""


@dataclass
class ProcessExtensionApprovalCommand:
    """Command to approve or reject an extension request."""

    extension_id: uuid.UUID
    actor: Actor
    approve: bool
    rejection_reason: Optional[str] = None
