"""
Idempotency service.

Deduplicates externally retried mutating calls: a key is stored as
processing before the call runs and as processed, with its result,
after it succeeds. A failed call releases the key.
"""
import logging
from typing import Any, Awaitable, Callable, Dict

from core.domain.clock import utc_now
from core.domain.exceptions import IdempotencyConflictError, ValidationError
from core.metrics import idempotent_replays_total
from licenses.domain.idempotency import IdempotencyRecord, IdempotencyStatus
from licenses.domain.policy import DEFAULT_POLICY, LicensingPolicy
from licenses.ports.idempotency_repository import IdempotencyRepository

logger = logging.getLogger(__name__)


class IdempotencyService:
    """Runs an operation at most once per idempotency key."""

    def __init__(self, repository: IdempotencyRepository, policy: LicensingPolicy = DEFAULT_POLICY):
        self.repository = repository
        self.policy = policy

    async def run(
        self,
        key: str,
        actor_id: str,
        operation: str,
        func: Callable[[], Awaitable[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        """
        Run ``func`` unless the key already holds a result.

        Args:
            key: Client-supplied idempotency key
            actor_id: Caller identity
            operation: Operation name the key is bound to
            func: Coroutine factory producing a JSON-compatible result

        Returns:
            The operation result (stored or fresh)

        Raises:
            ValidationError: Key reused for another operation or actor
            IdempotencyConflictError: Same key still processing
        """
        now = utc_now()
        existing = await self.repository.find(key)
        if existing is not None and (
            existing.is_expired(now) or existing.is_stale(now, self.policy.idempotency_stale_seconds)
        ):
            logger.info("Reclaiming idempotency key %s (%s)", key, existing.status.value)
            await self.repository.delete(key)
            existing = None

        if existing is not None:
            if existing.operation != operation or existing.actor_id != actor_id:
                raise ValidationError(
                    "Idempotency key was already used for a different request",
                    code="IDEMPOTENCY_KEY_REUSED",
                )
            if existing.status == IdempotencyStatus.PROCESSED:
                idempotent_replays_total.labels(operation=operation).inc()
                logger.info("Replaying stored result for idempotency key %s", key)
                return existing.response_data or {}
            raise IdempotencyConflictError()

        record = IdempotencyRecord.start(key, actor_id, operation, self.policy.idempotency_ttl_hours)
        if not await self.repository.create(record):
            raise IdempotencyConflictError()

        try:
            result = await func()
        except Exception:
            await self.repository.delete(key)
            raise
        await self.repository.mark_processed(key, result)
        return result
