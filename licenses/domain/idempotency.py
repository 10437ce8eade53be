"""
Idempotency key record.

A key maps a retried mutating request to the result of its first run.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from core.domain.clock import utc_now


class IdempotencyStatus(Enum):
    """Processing state of a key."""

    PROCESSING = "processing"
    PROCESSED = "processed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class IdempotencyRecord:
    """Stored state of one idempotency key."""

    key: str
    actor_id: str
    operation: str
    status: IdempotencyStatus
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    response_data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.key or not self.key.strip():
            raise ValueError("Idempotency key cannot be empty")
        if len(self.key) > 255:
            raise ValueError("Idempotency key too long")

    @classmethod
    def start(cls, key: str, actor_id: str, operation: str, ttl_hours: int) -> "IdempotencyRecord":
        now = utc_now()
        return cls(
            key=key,
            actor_id=actor_id,
            operation=operation,
            status=IdempotencyStatus.PROCESSING,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_stale(self, now: datetime, stale_after_seconds: int) -> bool:
        """A processing key untouched for too long is treated as abandoned."""
        return (
            self.status == IdempotencyStatus.PROCESSING
            and now - self.updated_at > timedelta(seconds=stale_after_seconds)
        )

    def processed(self, response_data: Dict[str, Any]) -> "IdempotencyRecord":
        return replace(
            self,
            status=IdempotencyStatus.PROCESSED,
            response_data=response_data,
            updated_at=utc_now(),
        )
