"""
Audit log repository port (interface).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
import uuid

from core.domain.clock import utc_now


@dataclass(frozen=True)
class AuditEntry:
    """An immutable record of a change made by an actor."""

    entity_type: str
    entity_id: uuid.UUID
    action: str
    actor: str
    changes: Dict[str, Any] = field(default_factory=dict)
    brand_id: Optional[uuid.UUID] = None
    created_at: datetime = field(default_factory=utc_now)


class AuditLogRepository(ABC):
    """Append-only audit trail."""

    @abstractmethod
    async def record(self, entry: AuditEntry) -> None:
        """
        Store an audit entry.

        Args:
            entry: Entry to store
        """
        pass
