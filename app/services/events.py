"""Outbound domain events.

Lifecycle and waitlist operations publish an event after their transaction
commits. Delivery (in-app notifications, SMS, review requests) happens in a
Celery worker, so a broken notifier can never undo or delay a transition.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

import structlog

logger = structlog.get_logger()


class EventType(str, Enum):
    """Event names consumed by the notification worker"""
    RESERVATION_CREATED = "reservation.created"
    RESERVATION_CONFIRMED = "reservation.confirmed"
    RESERVATION_ARRIVED = "reservation.arrived"
    RESERVATION_SEATED = "reservation.seated"
    RESERVATION_COMPLETED = "reservation.completed"
    RESERVATION_CANCELLED = "reservation.cancelled"
    RESERVATION_NO_SHOW = "reservation.no_show"
    RESERVATION_RESCHEDULED = "reservation.rescheduled"
    WAITLIST_NOTIFIED = "waitlist.notified"


@dataclass
class DomainEvent:
    type: EventType
    restaurant_id: UUID
    resource_id: UUID
    user_id: Optional[UUID] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form for the task queue"""
        return {
            "type": self.type.value,
            "restaurant_id": str(self.restaurant_id),
            "resource_id": str(self.resource_id),
            "user_id": str(self.user_id) if self.user_id else None,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainEvent":
        return cls(
            type=EventType(data["type"]),
            restaurant_id=UUID(data["restaurant_id"]),
            resource_id=UUID(data["resource_id"]),
            user_id=UUID(data["user_id"]) if data.get("user_id") else None,
            payload=data.get("payload") or {},
        )


class EventPublisher(ABC):
    """Hands committed events to whatever delivers them"""

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        pass


class CeleryEventPublisher(EventPublisher):
    """Enqueue events for the ``deliver_event`` worker task"""

    async def publish(self, event: DomainEvent) -> None:
        from app.jobs.tasks import deliver_event

        try:
            deliver_event.delay(event.to_dict())
        except Exception as e:
            # The state change is already committed; report and move on
            logger.error(
                "Failed to enqueue event",
                event_type=event.type.value,
                resource_id=str(event.resource_id),
                error=str(e),
            )


async def publish_all(publisher: Optional[EventPublisher], *events: DomainEvent) -> None:
    """Publish committed events, logging instead of raising on failure"""
    if publisher is None:
        return
    for event in events:
        try:
            await publisher.publish(event)
        except Exception as e:
            logger.error(
                "Event publisher failed",
                event_type=event.type.value,
                resource_id=str(event.resource_id),
                error=str(e),
            )
