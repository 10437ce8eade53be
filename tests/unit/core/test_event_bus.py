"""
Unit tests for the in-memory event bus.
"""
import uuid

import pytest

from core.domain.events import EventHandler
from core.domain.value_objects import LicenseStatus
from core.infrastructure.events import InMemoryEventBus
from licenses.domain.events import LicenseSigned, LicenseStatusChanged


def _status_changed(to_status=LicenseStatus.ACTIVE):
    return LicenseStatusChanged(
        license_id=uuid.uuid4(),
        brand_id=uuid.uuid4(),
        ip_asset_id=uuid.uuid4(),
        from_status=LicenseStatus.PENDING_SIGNATURE,
        to_status=to_status,
        transitioned_by="creator-1",
    )


class CollectingHandler(EventHandler):
    def __init__(self):
        self.seen = []

    async def handle(self, event):
        self.seen.append(event)


class FailingHandler(EventHandler):
    async def handle(self, event):
        raise RuntimeError("subscriber down")


class TestDomainEvent:
    """Tests for DomainEvent serialization."""

    def test_to_dict(self):
        """Test events serialize their own attributes as data."""
        event = _status_changed()
        data = event.to_dict()

        assert data["event_type"] == "LicenseStatusChanged"
        assert data["aggregate_id"] == str(event.license_id)
        assert data["data"]["to_status"] == "ACTIVE"
        assert data["data"]["license_id"] == str(event.license_id)
        assert "event_id" not in data["data"]


@pytest.mark.asyncio
class TestInMemoryEventBus:
    """Tests for InMemoryEventBus."""

    async def test_publish_to_subscribers(self):
        """Test subscribers receive events of their type only."""
        bus = InMemoryEventBus()
        handler = CollectingHandler()
        bus.subscribe(LicenseStatusChanged, handler)
        event = _status_changed()

        await bus.publish(event)
        await bus.publish(LicenseSigned(uuid.uuid4(), "brand-owner-1", "BRAND", False))

        assert handler.seen == [event]

    async def test_duplicate_subscription_ignored(self):
        """Test subscribing the same handler type twice delivers once."""
        bus = InMemoryEventBus()
        handler = CollectingHandler()
        bus.subscribe(LicenseStatusChanged, handler)
        bus.subscribe(LicenseStatusChanged, CollectingHandler())

        await bus.publish(_status_changed())
        assert len(handler.seen) == 1

    async def test_failing_handler_isolated(self):
        """Test a failing subscriber neither raises nor blocks others."""
        bus = InMemoryEventBus()
        handler = CollectingHandler()
        bus.subscribe(LicenseStatusChanged, FailingHandler())
        bus.subscribe(LicenseStatusChanged, handler)

        await bus.publish(_status_changed())
        assert len(handler.seen) == 1

    async def test_publish_all_in_order(self):
        """Test publish_all keeps the order of events."""
        bus = InMemoryEventBus()
        handler = CollectingHandler()
        bus.subscribe(LicenseStatusChanged, handler)
        events = [_status_changed(LicenseStatus.EXPIRING_SOON), _status_changed(LicenseStatus.EXPIRED)]

        await bus.publish_all(events)
        assert handler.seen == events

    async def test_clear(self):
        """Test clear drops subscriptions."""
        bus = InMemoryEventBus()
        handler = CollectingHandler()
        bus.subscribe(LicenseStatusChanged, handler)
        bus.clear()

        await bus.publish(_status_changed())
        assert handler.seen == []
