"""
Domain events base classes and infrastructure.

Domain events represent something that happened in the domain.
They are published after the originating transaction commits, so
subscribers never observe state that could still roll back.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from core.domain.clock import utc_now


def _serialize(value: Any) -> Any:
    """Make an event attribute JSON friendly."""
    if isinstance(value, (UUID, Enum)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class DomainEvent(ABC):
    """
    Base class for all domain events.

    Subclasses set their own attributes after calling ``super().__init__``;
    those attributes end up in the serialized payload.
    """

    event_id: UUID
    occurred_at: datetime
    aggregate_id: str
    event_type: str

    def __init_subclass__(cls, **kwargs):
        """Automatically set event_type for subclasses."""
        super().__init_subclass__(**kwargs)
        cls.event_type = cls.__name__

    def _init_event(self, aggregate_id: Any, occurred_at: Optional[datetime] = None) -> None:
        DomainEvent.__init__(
            self,
            event_id=uuid.uuid4(),
            occurred_at=occurred_at or utc_now(),
            aggregate_id=str(aggregate_id),
            event_type=type(self).__name__,
        )

    def payload(self) -> Dict[str, Any]:
        """Event-specific attributes."""
        base = {f.name for f in fields(DomainEvent)}
        return {
            key: _serialize(value)
            for key, value in vars(self).items()
            if key not in base and not key.startswith("_")
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            "event_id": str(self.event_id),
            "occurred_at": self.occurred_at.isoformat(),
            "aggregate_id": self.aggregate_id,
            "event_type": self.event_type,
            "data": self.payload(),
        }


class EventHandler(ABC):
    """
    Base class for event handlers.

    Event handlers process domain events asynchronously.
    """

    @abstractmethod
    async def handle(self, event: DomainEvent) -> None:
        """
        Handle a domain event.

        Args:
            event: The domain event to handle
        """
        pass


class EventBus(ABC):
    """
    Abstract event bus for publishing and subscribing to domain events.
    """

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """
        Publish a domain event.

        Args:
            event: The domain event to publish
        """
        pass

    @abstractmethod
    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        """
        Subscribe to a domain event type.

        Args:
            event_type: The type of event to subscribe to
            handler: The handler to call when event is published
        """
        pass
