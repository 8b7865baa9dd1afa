"""Background job tasks"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
import asyncio
import structlog

from app.jobs.celery_app import celery_app
from app.config import settings

logger = structlog.get_logger()


_loop: Optional[asyncio.AbstractEventLoop] = None


def run_async(coro):
    """Helper to run async functions in sync context.

    One loop per worker process, so pooled database connections stay usable
    across tasks.
    """
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


async def deliver_event_async(db, event_data: Dict[str, Any], notifier=None) -> bool:
    """Fan one committed domain event out through the notifier"""
    from app.integrations.notifier import Notifier
    from app.services.events import DomainEvent

    event = DomainEvent.from_dict(event_data)
    notifier = notifier or Notifier(db)
    return await notifier.deliver(event)


async def send_due_reminders(db, notifier=None, clock=None) -> int:
    """Remind guests whose confirmed reservation starts inside the reminder window"""
    from app.integrations.notifier import Notifier
    from app.models.reservation import Reservation, ReservationStatus
    from app.models.restaurant import Restaurant
    from app.models.user import User
    from app.services.clock import SystemClock
    from sqlalchemy import select

    notifier = notifier or Notifier(db)
    sent = 0

    result = await db.execute(select(Restaurant).where(Restaurant.is_active == True))  # noqa: E712
    for restaurant in result.scalars().all():
        now = (clock or SystemClock(restaurant.timezone)).now()
        window_start = now + timedelta(hours=settings.reminder_window_start_hours)
        window_end = now + timedelta(hours=settings.reminder_window_end_hours)

        due = await db.execute(
            select(Reservation).where(
                Reservation.restaurant_id == restaurant.id,
                Reservation.status == ReservationStatus.CONFIRMED.value,
                Reservation.reminder_sent.is_(None),
                Reservation.date.in_([window_start.date(), window_end.date()]),
            )
        )
        for reservation in due.scalars().all():
            starts_at = datetime.combine(reservation.date, reservation.time)
            if not window_start <= starts_at <= window_end:
                continue

            try:
                message = f"Reminder: Your reservation at {restaurant.name} is coming up! "
                message += f"{reservation.guest_count} guests at "
                message += f"{reservation.time.strftime('%I:%M %p')}. "
                message += "See you soon!"

                user = None
                if reservation.user_id:
                    user = (
                        await db.execute(select(User).where(User.id == reservation.user_id))
                    ).scalar_one_or_none()
                    notifier.notify(
                        reservation.user_id,
                        "reservation_reminder",
                        "Upcoming reservation",
                        message,
                        data={"reservation_id": str(reservation.id)},
                    )

                if user and user.phone:
                    await notifier.send_sms(user.phone, message)

                reservation.reminder_sent = datetime.utcnow()
                await db.commit()
                sent += 1

                logger.info(
                    "Sent reservation reminder",
                    reservation_id=str(reservation.id),
                )

            except Exception as e:
                await db.rollback()
                logger.error(
                    "Failed to send reservation reminder",
                    reservation_id=str(reservation.id),
                    error=str(e),
                )

    return sent


async def expire_no_shows(db, publisher=None, clock=None) -> int:
    """Mark overdue pending/confirmed reservations as no-shows, restaurant by restaurant"""
    from app.models.restaurant import Restaurant
    from app.services.availability import AvailabilityResolver
    from app.services.lifecycle import ReservationLifecycle
    from app.services.store import ReservationStore
    from app.services.tables import TableRegistry
    from sqlalchemy import select

    registry = TableRegistry(db)
    store = ReservationStore(db, registry)
    lifecycle = ReservationLifecycle(
        db,
        registry,
        store,
        AvailabilityResolver(db, registry, store),
        publisher=publisher,
        clock=clock,
    )

    expired = 0
    result = await db.execute(select(Restaurant.id).where(Restaurant.is_active == True))  # noqa: E712
    for restaurant_id in result.scalars().all():
        try:
            expired += len(await lifecycle.expire_overdue(restaurant_id))
        except Exception as e:
            logger.error(
                "Failed to expire overdue reservations",
                restaurant_id=str(restaurant_id),
                error=str(e),
            )
    return expired


@celery_app.task(name="deliver_event")
def deliver_event(event_data: Dict[str, Any]):
    """Deliver a reservation/waitlist event (in-app notification, SMS)"""
    logger.info("Delivering event", event_type=event_data.get("type"), resource_id=event_data.get("resource_id"))

    async def _deliver():
        from app.database import SessionLocal

        async with SessionLocal() as db:
            await deliver_event_async(db, event_data)

    run_async(_deliver())


@celery_app.task(name="send_reservation_reminders")
def send_reservation_reminders():
    """Send reminders for upcoming reservations"""
    logger.info("Sending reservation reminders")

    async def _send_reminders():
        from app.database import SessionLocal

        async with SessionLocal() as db:
            sent = await send_due_reminders(db)
        logger.info("Reservation reminders sent", count=sent)

    run_async(_send_reminders())


@celery_app.task(name="mark_overdue_no_shows")
def mark_overdue_no_shows():
    """Mark reservations whose guests never arrived as no-shows"""
    logger.info("Marking overdue reservations as no-show")

    async def _expire():
        from app.database import SessionLocal
        from app.services.events import CeleryEventPublisher

        async with SessionLocal() as db:
            expired = await expire_no_shows(db, publisher=CeleryEventPublisher())
        logger.info("Overdue reservations expired", count=expired)

    run_async(_expire())
