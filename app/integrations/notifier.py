"""Outbound notifications: in-app inbox rows and SMS"""

import asyncio
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient
import structlog

from app.config import settings
from app.integrations.retry import retry_once
from app.models.notification import Notification
from app.models.restaurant import Restaurant
from app.services.events import DomainEvent, EventType

logger = structlog.get_logger()


def _when(payload: Dict[str, Any]) -> str:
    parts = [payload.get("date"), payload.get("time")]
    return " at ".join(p for p in parts if p)


def render_event(event: DomainEvent, restaurant_name: str = "the restaurant") -> Optional[Tuple[str, str, str]]:
    """Map an event to (notification type, title, message); None if the guest isn't told"""
    payload = event.payload
    when = _when(payload)
    guests = payload.get("guest_count")

    if event.type == EventType.RESERVATION_CREATED:
        if payload.get("status") == "confirmed":
            return (
                "reservation_confirmed",
                "Reservation confirmed",
                f"Your table for {guests} at {restaurant_name} on {when} is confirmed.",
            )
        return (
            "system",
            "Reservation received",
            f"We received your request for {guests} at {restaurant_name} on {when}.",
        )

    if event.type == EventType.RESERVATION_CONFIRMED:
        return (
            "reservation_confirmed",
            "Reservation confirmed",
            f"Your table for {guests} at {restaurant_name} on {when} is confirmed.",
        )

    if event.type == EventType.RESERVATION_CANCELLED:
        return (
            "reservation_cancelled",
            "Reservation cancelled",
            f"Your reservation at {restaurant_name} on {when} was cancelled.",
        )

    if event.type == EventType.RESERVATION_RESCHEDULED:
        return (
            "system",
            "Reservation updated",
            f"Your reservation at {restaurant_name} is now on {when} for {guests}.",
        )

    if event.type == EventType.RESERVATION_COMPLETED:
        return (
            "review_request",
            "How was your visit?",
            f"Thanks for dining at {restaurant_name}. We'd love to hear your feedback!",
        )

    if event.type == EventType.RESERVATION_NO_SHOW:
        return (
            "system",
            "Missed reservation",
            f"We missed you at {restaurant_name} on {when}.",
        )

    if event.type == EventType.WAITLIST_NOTIFIED:
        return (
            "waitlist_ready",
            "Your table is ready",
            f"Hi {payload.get('name') or 'there'}, your table at {restaurant_name} is ready. Please come to the host stand.",
        )

    # arrived / seated happen in front of staff
    return None


class Notifier:
    """Writes in-app notifications and sends SMS through Twilio"""

    def __init__(
        self,
        db: AsyncSession,
        sms_client: Optional[TwilioClient] = None,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.timeout = timeout or settings.notifier_timeout_seconds
        self.sms_client = sms_client
        if self.sms_client is None and settings.twilio_account_sid:
            self.sms_client = TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)

    def notify(
        self,
        user_id: UUID,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Stage an inbox row; the caller commits"""
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data_json=data or {},
            is_read=False,
        )
        self.db.add(notification)
        return notification

    async def send_sms(self, to: str, body: str) -> bool:
        if self.sms_client is None:
            logger.info("SMS skipped, Twilio not configured", to=to)
            return False

        async def _send():
            return await asyncio.to_thread(
                self.sms_client.messages.create,
                body=body,
                from_=settings.twilio_phone_number,
                to=to,
            )

        try:
            message = await retry_once(_send, self.timeout, "twilio.sms", retry_on=(TwilioRestException,))
        except (TwilioRestException, asyncio.TimeoutError) as e:
            logger.error("Failed to send SMS", to=to, error=str(e) or type(e).__name__)
            return False

        logger.info("SMS sent", to=to, message_sid=message.sid)
        return True

    async def deliver(self, event: DomainEvent) -> bool:
        """Fan an event out to its recipient. Returns whether anything was sent."""
        restaurant = (
            await self.db.execute(select(Restaurant).where(Restaurant.id == event.restaurant_id))
        ).scalar_one_or_none()
        rendered = render_event(event, restaurant.name if restaurant else "the restaurant")
        if rendered is None:
            return False

        notification_type, title, message = rendered
        sent = False

        if event.user_id:
            self.notify(
                event.user_id,
                notification_type,
                title,
                message,
                data={"resource_id": str(event.resource_id), "event": event.type.value},
            )
            await self.db.commit()
            sent = True

        phone = event.payload.get("phone")
        if phone:
            sent = await self.send_sms(phone, message) or sent

        logger.info("Event delivered", event_type=event.type.value, resource_id=str(event.resource_id), sent=sent)
        return sent
