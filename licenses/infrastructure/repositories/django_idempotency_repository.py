"""
Django implementation of IdempotencyRepository port.
"""
from typing import Any, Dict, Optional

from asgiref.sync import sync_to_async
from django.db import IntegrityError, transaction
from django.utils import timezone

from licenses.domain.idempotency import IdempotencyRecord, IdempotencyStatus
from licenses.infrastructure.models import IdempotencyKey
from licenses.ports.idempotency_repository import IdempotencyRepository


class DjangoIdempotencyRepository(IdempotencyRepository):
    """Stores idempotency keys in the idempotency_keys table."""

    def _to_domain(self, model: IdempotencyKey) -> IdempotencyRecord:
        return IdempotencyRecord(
            key=model.key,
            actor_id=model.actor_id,
            operation=model.operation,
            status=IdempotencyStatus(model.status),
            created_at=model.created_at,
            updated_at=model.updated_at,
            expires_at=model.expires_at,
            response_data=model.response_data,
        )

    @sync_to_async
    def find(self, key: str) -> Optional[IdempotencyRecord]:
        try:
            return self._to_domain(IdempotencyKey.objects.get(key=key))
        except IdempotencyKey.DoesNotExist:
            return None

    @sync_to_async
    def create(self, record: IdempotencyRecord) -> bool:
        """
        Insert the key; the unique constraint decides concurrent races.

        Returns:
            False when the key already exists
        """
        try:
            with transaction.atomic():
                IdempotencyKey.objects.create(
                    key=record.key,
                    actor_id=record.actor_id,
                    operation=record.operation,
                    status=record.status.value,
                    created_at=record.created_at,
                    updated_at=record.updated_at,
                    expires_at=record.expires_at,
                )
        except IntegrityError:
            return False
        return True

    @sync_to_async
    def mark_processed(self, key: str, response_data: Dict[str, Any]) -> None:
        IdempotencyKey.objects.filter(key=key).update(
            status=IdempotencyStatus.PROCESSED.value,
            response_data=response_data,
            updated_at=timezone.now(),
        )

    @sync_to_async
    def delete(self, key: str) -> None:
        IdempotencyKey.objects.filter(key=key).delete()
