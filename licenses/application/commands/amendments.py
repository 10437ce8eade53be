"""
Amendment commands.
"""
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from core.domain.value_objects import Actor
from licenses.domain.amendment import AmendmentType


@dataclass
class ProposeAmendmentCommand:
    """
    Command to propose field changes on a license.

    ``changes`` maps amendable field names to their proposed values in
    API form (ISO dates, scope dicts).
    """

    license_id: uuid.UUID
    actor: Actor
    amendment_type: AmendmentType
    justification: str
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProcessAmendmentApprovalCommand:
    """Command to approve or reject an amendment."""

    amendment_id: uuid.UUID
    actor: Actor
    approve: bool
    comments: Optional[str] = None
