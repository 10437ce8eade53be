"""
Unit tests for IdempotencyService.
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from core.domain.clock import utc_now
from core.domain.exceptions import IdempotencyConflictError, ValidationError
from licenses.application.services.idempotency_service import IdempotencyService
from licenses.domain.idempotency import IdempotencyRecord, IdempotencyStatus


class Counter:
    """Operation stand-in counting its runs."""

    def __init__(self, result=None, error=None):
        self.calls = 0
        self.result = result if result is not None else {"id": "license-1"}
        self.error = error

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def service(idempotency_repository, policy):
    return IdempotencyService(idempotency_repository, policy=policy)


@pytest.mark.asyncio
class TestIdempotencyService:
    """Tests for IdempotencyService."""

    async def test_first_run_stores_result(self, service, idempotency_repository):
        """Test the first call runs and stores its result."""
        operation = Counter()

        result = await service.run("key-1", "brand-owner-1", "create_license", operation)

        assert result == {"id": "license-1"}
        stored = idempotency_repository.items["key-1"]
        assert stored.status == IdempotencyStatus.PROCESSED
        assert stored.response_data == {"id": "license-1"}

    async def test_replay(self, service):
        """Test a retried call returns the stored result without running again."""
        operation = Counter()
        await service.run("key-1", "brand-owner-1", "create_license", operation)
        result = await service.run("key-1", "brand-owner-1", "create_license", operation)

        assert result == {"id": "license-1"}
        assert operation.calls == 1

    async def test_reuse_for_other_operation(self, service):
        """Test a key bound to one operation cannot serve another."""
        await service.run("key-1", "brand-owner-1", "create_license", Counter())

        with pytest.raises(ValidationError) as exc_info:
            await service.run("key-1", "brand-owner-1", "submit_license", Counter())
        assert exc_info.value.code == "IDEMPOTENCY_KEY_REUSED"

    async def test_reuse_by_other_actor(self, service):
        """Test a key cannot be replayed by a different caller."""
        await service.run("key-1", "brand-owner-1", "create_license", Counter())

        with pytest.raises(ValidationError):
            await service.run("key-1", "brand-owner-2", "create_license", Counter())

    async def test_in_progress(self, service, idempotency_repository, policy):
        """Test a key still processing is a conflict."""
        await idempotency_repository.create(
            IdempotencyRecord.start("key-1", "brand-owner-1", "create_license", policy.idempotency_ttl_hours)
        )
        operation = Counter()

        with pytest.raises(IdempotencyConflictError):
            await service.run("key-1", "brand-owner-1", "create_license", operation)
        assert operation.calls == 0

    async def test_failure_releases_key(self, service, idempotency_repository):
        """Test a failed call leaves the key free for a retry."""
        with pytest.raises(RuntimeError):
            await service.run("key-1", "brand-owner-1", "create_license", Counter(error=RuntimeError("boom")))
        assert "key-1" not in idempotency_repository.items

        result = await service.run("key-1", "brand-owner-1", "create_license", Counter())
        assert result == {"id": "license-1"}

    async def test_stale_processing_reclaimed(self, service, idempotency_repository, policy):
        """Test an abandoned processing key is taken over."""
        record = IdempotencyRecord.start("key-1", "brand-owner-1", "create_license", policy.idempotency_ttl_hours)
        stale_at = utc_now() - timedelta(seconds=policy.idempotency_stale_seconds + 5)
        idempotency_repository.items["key-1"] = replace(record, updated_at=stale_at)
        operation = Counter()

        await service.run("key-1", "brand-owner-1", "create_license", operation)
        assert operation.calls == 1

    async def test_expired_key_reclaimed(self, service, idempotency_repository):
        """Test an expired key runs the operation again, even for another operation."""
        record = IdempotencyRecord.start("key-1", "brand-owner-1", "create_license", 1)
        expired = replace(
            record.processed({"id": "old"}), expires_at=utc_now() - timedelta(minutes=1)
        )
        idempotency_repository.items["key-1"] = expired
        operation = Counter()

        result = await service.run("key-1", "brand-owner-1", "submit_license", operation)

        assert result == {"id": "license-1"}
        assert operation.calls == 1
