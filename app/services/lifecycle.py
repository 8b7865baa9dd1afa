"""Reservation lifecycle manager.

Every state change goes through :data:`TRANSITIONS`; an action whose source
status is not listed raises :class:`InvalidState`. The reservation row, its
table's physical status and the audit entry are committed together, and
domain events are published only after that commit succeeds.
"""

import asyncio
import json
import secrets
from collections import namedtuple
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.integrations.payments import PaymentError, PaymentGateway
from app.integrations.retry import retry_once
from app.models.notification import OperatorAlert
from app.models.reservation import (
    Reservation,
    ReservationSource,
    ReservationStatus,
    ACTIVE_STATUSES,
)
from app.models.restaurant import Restaurant
from app.models.table import Table, TableStatus
from app.models.user import User
from app.services.audit import record_audit, reservation_snapshot
from app.services.availability import AvailabilityResolver
from app.services.clock import Clock, SystemClock, add_minutes, slot_time, to_minutes
from app.services.errors import Conflict, Internal, InvalidState, NotFound, ValidationError
from app.services.events import DomainEvent, EventPublisher, EventType, publish_all
from app.services.store import ReservationStore
from app.services.table_status import LogicalStatus, TableStatusEngine, holds_table
from app.services.tables import TableRegistry

logger = structlog.get_logger()

S = ReservationStatus

Rule = namedtuple("Rule", ["sources", "target", "table_status", "stamp", "event"])

TRANSITIONS = {
    "confirm": Rule(
        frozenset({S.PENDING}), S.CONFIRMED, TableStatus.RESERVED, "confirmed_at",
        EventType.RESERVATION_CONFIRMED,
    ),
    "arrive": Rule(
        frozenset({S.PENDING, S.CONFIRMED}), S.ARRIVED, TableStatus.OCCUPIED, "arrived_at",
        EventType.RESERVATION_ARRIVED,
    ),
    "seat": Rule(
        frozenset({S.CONFIRMED, S.ARRIVED}), S.SEATED, TableStatus.OCCUPIED, "seated_at",
        EventType.RESERVATION_SEATED,
    ),
    "complete": Rule(
        ACTIVE_STATUSES, S.COMPLETED, TableStatus.AVAILABLE, "completed_at",
        EventType.RESERVATION_COMPLETED,
    ),
    "cancel": Rule(
        ACTIVE_STATUSES, S.CANCELLED, TableStatus.AVAILABLE, "cancelled_at",
        EventType.RESERVATION_CANCELLED,
    ),
    "no_show": Rule(
        ACTIVE_STATUSES, S.NO_SHOW, TableStatus.AVAILABLE, None,
        EventType.RESERVATION_NO_SHOW,
    ),
}

# PATCH /status target -> action
STATUS_ACTIONS = {
    S.CONFIRMED: "confirm",
    S.ARRIVED: "arrive",
    S.SEATED: "seat",
    S.COMPLETED: "complete",
    S.CANCELLED: "cancel",
    S.NO_SHOW: "no_show",
}

RESCHEDULABLE = frozenset({S.PENDING, S.CONFIRMED})


def generate_code(prefix: str = "MF") -> str:
    """Short code printed in the guest's QR"""
    return f"{prefix}-{secrets.token_hex(6).upper()}"


def extract_code(raw: Optional[str]) -> str:
    """Accept a plain code or the mobile app's JSON payload"""
    code = (raw or "").strip()
    if not code:
        raise ValidationError("QR code is required")

    if code.startswith("{") and code.endswith("}"):
        try:
            parsed = json.loads(code)
        except ValueError:
            return code
        if isinstance(parsed, dict):
            return str(parsed.get("code") or parsed.get("reservationId") or code)
    return code


class ReservationLifecycle:
    """Creates reservations and drives them through their states"""

    def __init__(
        self,
        db: AsyncSession,
        registry: TableRegistry,
        store: ReservationStore,
        resolver: AvailabilityResolver,
        status_engine: Optional[TableStatusEngine] = None,
        publisher: Optional[EventPublisher] = None,
        payments: Optional[PaymentGateway] = None,
        clock: Optional[Clock] = None,
        service_minutes: Optional[int] = None,
        walk_in_buffer_minutes: Optional[int] = None,
    ):
        self.db = db
        self.registry = registry
        self.store = store
        self.resolver = resolver
        self.status_engine = status_engine
        self.publisher = publisher
        self.payments = payments
        self.clock = clock
        self.service_minutes = service_minutes or settings.default_service_minutes
        self.walk_in_buffer_minutes = walk_in_buffer_minutes or settings.walk_in_buffer_minutes

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, reservation_id: UUID, actor: Optional[User] = None) -> Reservation:
        reservation = await self.store.get(reservation_id)
        await self._ensure_owner_or_staff(reservation, actor)
        return reservation

    async def list_for_user(
        self,
        user_id: UUID,
        status: Optional[str] = None,
        upcoming: bool = False,
    ) -> Tuple[List[Reservation], Dict[str, int]]:
        """A guest's reservations, newest first, with summary counts"""
        today = self._clock_for(None).today()
        reservations = await self.store.list_for_user(
            user_id,
            status=status,
            from_date=today if upcoming else None,
        )
        if upcoming:
            reservations = [r for r in reservations if S(r.status) in RESCHEDULABLE]

        stats = {
            "total": len(reservations),
            "completed": sum(1 for r in reservations if r.status == S.COMPLETED.value),
            "cancelled": sum(1 for r in reservations if r.status == S.CANCELLED.value),
            "no_show": sum(1 for r in reservations if r.status == S.NO_SHOW.value),
            "upcoming": sum(
                1 for r in reservations
                if S(r.status) in RESCHEDULABLE and r.date >= today
            ),
        }
        return reservations, stats

    async def list_for_restaurant(
        self,
        restaurant_id: UUID,
        day: Optional[date] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
        actor: Optional[User] = None,
    ) -> Tuple[List[Reservation], int]:
        await self.registry.ensure_staff(restaurant_id, actor)
        if status is not None:
            _parse_status(status)
        return await self.store.list_for_restaurant(restaurant_id, day, status, limit, offset)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(
        self,
        actor: Optional[User],
        restaurant_id: UUID,
        table_id: UUID,
        day: date,
        at: time,
        guest_count: int,
        occasion: Optional[str] = None,
        special_request: Optional[str] = None,
        deposit_paid: bool = False,
        deposit_amount: Optional[Decimal] = None,
        payment_intent_id: Optional[str] = None,
    ) -> Reservation:
        """Book a table slot. Pending, or confirmed when the deposit is already paid."""
        if not restaurant_id or not table_id or day is None or at is None or guest_count is None:
            raise ValidationError("Missing required fields")
        if guest_count < 1:
            raise ValidationError("Guest count must be at least 1")
        at = slot_time(at)

        restaurant = await self.registry.get_restaurant(restaurant_id)
        if restaurant.is_closed_on(day):
            raise ValidationError("The restaurant is closed on the selected holiday date")

        table = await self.registry.get(table_id, restaurant_id)
        if not table.is_active:
            raise ValidationError("This table is not available for reservations")
        self.store.validate_capacity(table, guest_count)

        if await self.resolver.has_conflict(table.id, day, at):
            raise Conflict()

        opened_intent = None
        if deposit_amount and not deposit_paid and not payment_intent_id and self.payments:
            opened_intent = await self._request_deposit(restaurant, table, day, at, deposit_amount)
            payment_intent_id = opened_intent

        now = datetime.utcnow()
        reservation = Reservation(
            restaurant_id=restaurant_id,
            table_id=table.id,
            user_id=actor.id if actor else None,
            date=day,
            time=at,
            guest_count=guest_count,
            status=(S.CONFIRMED if deposit_paid else S.PENDING).value,
            source=ReservationSource.ONLINE.value,
            qr_code=generate_code("MF"),
            occasion=occasion,
            special_request=special_request,
            deposit_paid=bool(deposit_paid),
            deposit_amount=deposit_amount,
            deposit_paid_at=now if deposit_paid else None,
            payment_intent_id=payment_intent_id,
            confirmed_at=now if deposit_paid else None,
        )
        try:
            await self.store.insert(reservation)
            self.registry.set_status(table, TableStatus.PENDING)
            await self.store.commit()
        except (Conflict, SQLAlchemyError):
            if opened_intent is not None:
                await self._void_deposit(opened_intent, restaurant_id)
            raise
        await self.db.refresh(reservation)

        logger.info(
            "Reservation created",
            reservation_id=str(reservation.id),
            restaurant_id=str(restaurant_id),
            table_id=str(table.id),
            status=reservation.status,
        )

        self._invalidate(restaurant_id)
        await publish_all(self.publisher, self._event(reservation, EventType.RESERVATION_CREATED))
        return reservation

    async def repeat(
        self,
        source_id: UUID,
        day: date,
        at: time,
        actor: User,
    ) -> Reservation:
        """Book the same table and party again at a new slot"""
        source = await self.store.get(source_id)
        if source.user_id is None or source.user_id != actor.id:
            raise NotFound("Reservation not found")

        table = await self.registry.get(source.table_id)
        if not table.is_active:
            raise Conflict("The original table is no longer available")

        return await self.create(
            actor,
            restaurant_id=source.restaurant_id,
            table_id=source.table_id,
            day=day,
            at=at,
            guest_count=source.guest_count,
            occasion=source.occasion,
            special_request=source.special_request,
        )

    async def assign_walk_in(
        self,
        restaurant_id: UUID,
        table_id: UUID,
        party_size: int,
        actor: Optional[User] = None,
        name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Reservation:
        """Seat a party without a booking, if the table is free long enough"""
        await self.registry.ensure_staff(restaurant_id, actor)
        if self.status_engine is None:
            raise Internal("Table status engine is not configured")

        restaurant = await self.registry.get_restaurant(restaurant_id)
        table = await self.registry.get(table_id, restaurant_id)
        self.store.validate_capacity(table, party_size)

        report = await self.status_engine.status_for_table(restaurant_id, table.id, use_cache=False)
        if report.logical_status == LogicalStatus.NEXT_RESERVATION:
            if report.remaining_minutes is None or report.remaining_minutes < self.walk_in_buffer_minutes:
                raise Conflict(
                    f"Next reservation starts in {report.remaining_minutes} minutes; "
                    f"walk-ins need at least {self.walk_in_buffer_minutes}"
                )
        elif report.logical_status != LogicalStatus.FREE:
            raise Conflict(
                f"Table is not available for walk-ins (status: {report.logical_status.value})"
            )

        local_now = self._clock_for(restaurant).now().replace(second=0, microsecond=0)
        start = local_now.time()
        stamp = datetime.utcnow()

        reservation = Reservation(
            restaurant_id=restaurant_id,
            table_id=table.id,
            user_id=None,
            date=local_now.date(),
            time=start,
            end_time=add_minutes(start, self.service_minutes),
            guest_count=party_size,
            status=S.SEATED.value,
            source=ReservationSource.WALK_IN.value,
            qr_code=generate_code("WI"),
            internal_notes=f"Walk-in for: {name or 'no name'} ({phone or 'no phone'})",
            arrived_at=stamp,
            seated_at=stamp,
        )
        await self.store.insert(reservation)
        self.registry.set_status(table, TableStatus.OCCUPIED)
        record_audit(
            self.db, "walk_in", "reservation", reservation.id,
            restaurant_id=restaurant_id, actor=actor,
            after=reservation_snapshot(reservation),
        )
        await self.store.commit()
        await self.db.refresh(reservation)

        logger.info(
            "Walk-in seated",
            reservation_id=str(reservation.id),
            table_id=str(table.id),
            party_size=party_size,
        )

        self._invalidate(restaurant_id)
        await publish_all(self.publisher, self._event(reservation, EventType.RESERVATION_SEATED))
        return reservation

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def confirm(self, reservation_id: UUID, actor: Optional[User] = None) -> Reservation:
        return await self._run(reservation_id, "confirm", actor)

    async def arrive(self, reservation_id: UUID, actor: Optional[User] = None) -> Reservation:
        return await self._run(reservation_id, "arrive", actor)

    async def seat(self, reservation_id: UUID, actor: Optional[User] = None) -> Reservation:
        return await self._run(reservation_id, "seat", actor)

    async def complete(self, reservation_id: UUID, actor: Optional[User] = None) -> Reservation:
        return await self._run(reservation_id, "complete", actor)

    async def no_show(self, reservation_id: UUID, actor: Optional[User] = None) -> Reservation:
        return await self._run(reservation_id, "no_show", actor)

    async def set_status(
        self,
        reservation_id: UUID,
        status: str,
        actor: Optional[User] = None,
        reason: Optional[str] = None,
    ) -> Reservation:
        """Generic status update, dispatched to the matching transition"""
        target = _parse_status(status)
        if target == S.PENDING:
            raise ValidationError("A reservation cannot be moved back to pending")

        action = STATUS_ACTIONS[target]
        if action == "cancel":
            return await self.cancel(reservation_id, reason, actor)
        return await self._run(reservation_id, action, actor)

    async def cancel(
        self,
        reservation_id: UUID,
        reason: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> Reservation:
        """Cancel, free the table and refund a paid deposit (or void an unpaid one)"""
        reservation = await self.store.get(reservation_id)
        await self._ensure_owner_or_staff(reservation, actor)

        if reservation.current_status.is_terminal:
            raise InvalidState("Reservation is already cancelled or completed")

        before = await self._apply(reservation, "cancel", actor)
        reservation.cancellation_reason = reason
        self._audit(reservation, "cancel", actor, before)
        await self.store.commit()

        logger.info(
            "Reservation cancelled",
            reservation_id=str(reservation.id),
            has_deposit=bool(reservation.deposit_paid),
        )

        self._invalidate(reservation.restaurant_id)
        if reservation.payment_intent_id:
            if reservation.deposit_paid:
                await self._refund(reservation)
            elif self.payments is not None:
                await self._void_deposit(reservation.payment_intent_id, reservation.restaurant_id, reservation.id)

        await publish_all(self.publisher, self._event(reservation, EventType.RESERVATION_CANCELLED))
        return reservation

    async def confirm_deposit(
        self,
        reservation_id: UUID,
        payment_intent_id: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> Reservation:
        """Record a deposit the guest has paid; a pending booking becomes confirmed"""
        reservation = await self.store.get(reservation_id)
        await self._ensure_owner_or_staff(reservation, actor)

        if reservation.deposit_paid:
            return reservation
        if reservation.current_status not in RESCHEDULABLE:
            raise InvalidState(f"Cannot take a deposit for a reservation that is {reservation.status}")

        intent_id = payment_intent_id or reservation.payment_intent_id
        if not intent_id:
            raise ValidationError("Payment Intent ID is required")
        if reservation.payment_intent_id and intent_id != reservation.payment_intent_id:
            raise ValidationError("Payment does not belong to this reservation")
        if self.payments is None:
            raise Internal("Payment provider is not configured")

        try:
            paid = await retry_once(
                lambda: self.payments.is_paid(intent_id),
                settings.payment_timeout_seconds,
                "payments.is_paid",
                retry_on=(PaymentError,),
            )
        except (PaymentError, asyncio.TimeoutError) as e:
            logger.error("Deposit check failed", reservation_id=str(reservation.id), error=str(e) or type(e).__name__)
            raise Internal("Payment provider is unavailable, please try again")
        if not paid:
            raise ValidationError("Payment not completed")

        before = reservation_snapshot(reservation)
        reservation.deposit_paid = True
        reservation.deposit_paid_at = datetime.utcnow()
        reservation.payment_intent_id = intent_id
        confirmed = reservation.current_status == S.PENDING
        if confirmed:
            await self._apply(reservation, "confirm", actor)
        self._audit(reservation, "deposit_paid", actor, before)
        await self.store.commit()
        await self.db.refresh(reservation)

        logger.info(
            "Deposit confirmed",
            reservation_id=str(reservation.id),
            payment_intent_id=intent_id,
            status=reservation.status,
        )

        self._invalidate(reservation.restaurant_id)
        if confirmed:
            await publish_all(self.publisher, self._event(reservation, EventType.RESERVATION_CONFIRMED))
        return reservation

    async def reschedule(
        self,
        reservation_id: UUID,
        actor: Optional[User] = None,
        day: Optional[date] = None,
        at: Optional[time] = None,
        guest_count: Optional[int] = None,
    ) -> Reservation:
        """Move a pending/confirmed reservation to a new slot or party size"""
        if day is None and at is None and guest_count is None:
            raise ValidationError("At least one field (date, time, guestCount) is required for update")
        if at is not None:
            at = slot_time(at)

        reservation = await self.store.get(reservation_id)
        await self._ensure_owner_or_staff(reservation, actor)

        if reservation.current_status not in RESCHEDULABLE:
            raise InvalidState(
                f"Only pending or confirmed reservations can be modified (current: {reservation.status})"
            )

        if day is not None and day != reservation.date:
            restaurant = await self.registry.get_restaurant(reservation.restaurant_id)
            if restaurant.is_closed_on(day):
                raise ValidationError("The restaurant is closed on the selected holiday date")

        if guest_count is not None:
            table = await self.registry.get(reservation.table_id)
            self.store.validate_capacity(table, guest_count)

        new_day = day if day is not None else reservation.date
        new_time = at if at is not None else reservation.time
        if (new_day, new_time) != (reservation.date, reservation.time):
            if await self.resolver.has_conflict(
                reservation.table_id, new_day, new_time, exclude_reservation_id=reservation.id
            ):
                raise Conflict("The table is already reserved for the new date and time")

        before = reservation_snapshot(reservation)
        reservation.date = new_day
        reservation.time = new_time
        if at is not None:
            # Derived again from the service duration
            reservation.end_time = None
        if guest_count is not None:
            reservation.guest_count = guest_count

        self._audit(reservation, "reschedule", actor, before)
        await self.store.commit()
        await self.db.refresh(reservation)

        logger.info(
            "Reservation rescheduled",
            reservation_id=str(reservation.id),
            date=new_day.isoformat(),
            time=new_time.isoformat(),
        )

        self._invalidate(reservation.restaurant_id)
        await publish_all(self.publisher, self._event(reservation, EventType.RESERVATION_RESCHEDULED))
        return reservation

    async def verify_code(
        self,
        restaurant_id: UUID,
        raw_code: str,
        auto_arrive: bool = False,
        actor: Optional[User] = None,
    ) -> Tuple[Reservation, bool]:
        """Resolve a scanned QR; optionally check the guest in"""
        await self.registry.ensure_staff(restaurant_id, actor)
        code = extract_code(raw_code)

        reservation = await self.store.find_by_code(restaurant_id, code)
        if reservation is None:
            raise NotFound("Reservation not found for this restaurant")

        status = reservation.current_status
        if auto_arrive and status in TRANSITIONS["arrive"].sources:
            reservation = await self._run(reservation.id, "arrive", actor)
            return reservation, True

        return reservation, False

    async def release_table(
        self,
        restaurant_id: UUID,
        table_id: UUID,
        actor: Optional[User] = None,
        changes: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Table, Optional[Reservation]]:
        """Staff frees a table; whoever is holding it right now is completed.

        ``changes`` are further table edits committed together with the
        release, so either all of it happens or none of it does.
        """
        await self.registry.ensure_staff(restaurant_id, actor)
        table = await self.registry.get(table_id, restaurant_id)
        staged = self.registry.validate_changes(changes or {})
        staged.pop("status", None)

        restaurant = await self.registry.get_restaurant(restaurant_id)
        holding = await self._current_holder(table.id, self._clock_for(restaurant).now())

        if holding is not None:
            before = await self._apply(holding, "complete", actor)
            self._audit(holding, "complete", actor, before)
        self.registry.apply_changes(table, staged)
        self.registry.set_status(table, TableStatus.AVAILABLE)
        await self.store.commit()
        await self.db.refresh(table)

        logger.info(
            "Table released",
            table_id=str(table.id),
            completed_reservation_id=str(holding.id) if holding else None,
        )

        self._invalidate(restaurant_id)
        if holding is not None:
            await publish_all(self.publisher, self._event(holding, EventType.RESERVATION_COMPLETED))
        return table, holding

    async def expire_overdue(self, restaurant_id: UUID, grace_minutes: Optional[int] = None) -> List[Reservation]:
        """Mark today's pending/confirmed bookings past their grace period as no-shows"""
        grace = grace_minutes if grace_minutes is not None else settings.no_show_grace_minutes
        restaurant = await self.registry.get_restaurant(restaurant_id)
        now = self._clock_for(restaurant).now()

        candidates = await self.store.list_for_day(
            restaurant_id,
            now.date(),
            statuses=[S.PENDING.value, S.CONFIRMED.value],
        )
        current = to_minutes(now.time())
        overdue = [r for r in candidates if current - to_minutes(r.time) > grace]

        expired = []
        for reservation in overdue:
            expired.append(await self._run(reservation.id, "no_show", None))
        if expired:
            logger.info("Marked overdue reservations as no-show", restaurant_id=str(restaurant_id), count=len(expired))
        return expired

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, reservation_id: UUID, action: str, actor: Optional[User]) -> Reservation:
        reservation = await self.store.get(reservation_id)
        await self.registry.ensure_staff(reservation.restaurant_id, actor)

        before = await self._apply(reservation, action, actor)
        self._audit(reservation, action, actor, before)
        await self.store.commit()
        await self.db.refresh(reservation)

        logger.info(
            "Reservation status changed",
            reservation_id=str(reservation.id),
            old_status=before["status"],
            new_status=reservation.status,
        )

        self._invalidate(reservation.restaurant_id)
        await publish_all(self.publisher, self._event(reservation, TRANSITIONS[action].event))
        return reservation

    async def _apply(self, reservation: Reservation, action: str, actor: Optional[User]) -> Dict[str, Any]:
        """Stage one transition and its table side effect"""
        rule = TRANSITIONS[action]
        current = reservation.current_status
        if current not in rule.sources:
            raise InvalidState(f"Cannot {action.replace('_', ' ')} a reservation that is {current.value}")

        before = reservation_snapshot(reservation)
        reservation.status = rule.target.value
        if rule.stamp:
            setattr(reservation, rule.stamp, datetime.utcnow())

        table = await self.registry.get(reservation.table_id)
        self.registry.set_status(table, rule.table_status)
        return before

    def _audit(self, reservation: Reservation, action: str, actor: Optional[User], before: Dict[str, Any]) -> None:
        record_audit(
            self.db,
            action,
            "reservation",
            reservation.id,
            restaurant_id=reservation.restaurant_id,
            actor=actor,
            before=before,
            after=reservation_snapshot(reservation),
        )

    async def _current_holder(self, table_id: UUID, local_now: datetime) -> Optional[Reservation]:
        """On-site guests from any earlier day, or a booking that has started today"""
        today = local_now.date()
        for reservation in await self.store.list_table_holders(table_id):
            if reservation.date > today:
                continue
            if reservation.date < today and reservation.current_status == S.CONFIRMED:
                continue
            if holds_table(reservation, local_now.time(), self.service_minutes):
                return reservation
        return None

    async def _ensure_owner_or_staff(self, reservation: Reservation, actor: Optional[User]) -> None:
        if actor is not None and reservation.user_id == actor.id:
            return
        await self.registry.ensure_staff(reservation.restaurant_id, actor)

    async def _request_deposit(
        self,
        restaurant: Restaurant,
        table: Table,
        day: date,
        at: time,
        amount: Decimal,
    ) -> str:
        try:
            return await retry_once(
                lambda: self.payments.charge(
                    amount,
                    settings.stripe_currency,
                    metadata={
                        "restaurant_id": str(restaurant.id),
                        "table_id": str(table.id),
                        "slot": f"{day.isoformat()} {at.strftime('%H:%M')}",
                    },
                ),
                settings.payment_timeout_seconds,
                "payments.charge",
                retry_on=(PaymentError,),
            )
        except (PaymentError, asyncio.TimeoutError) as e:
            logger.error("Deposit request failed", restaurant_id=str(restaurant.id), error=str(e))
            raise Internal("Payment provider is unavailable, please try again")

    async def _refund(self, reservation: Reservation) -> None:
        """Refund after the cancellation is committed; failures go to the operator queue"""
        if self.payments is None:
            logger.warning("No payment gateway configured, refund skipped", reservation_id=str(reservation.id))
            return

        payment_intent_id = reservation.payment_intent_id
        try:
            refund_id = await retry_once(
                lambda: self.payments.refund(payment_intent_id),
                settings.payment_timeout_seconds,
                "payments.refund",
                retry_on=(PaymentError,),
            )
        except (PaymentError, asyncio.TimeoutError) as e:
            logger.error(
                "Refund failed",
                reservation_id=str(reservation.id),
                payment_intent_id=payment_intent_id,
                error=str(e) or type(e).__name__,
            )
            await self._queue_alert(
                reservation.restaurant_id,
                "refund_failed",
                reservation.id,
                {
                    "payment_intent_id": payment_intent_id,
                    "amount": str(reservation.deposit_amount) if reservation.deposit_amount is not None else None,
                    "error": str(e) or type(e).__name__,
                },
            )
            return

        logger.info("Refund issued", reservation_id=str(reservation.id), refund_id=refund_id)

    async def _void_deposit(
        self,
        payment_intent_id: str,
        restaurant_id: UUID,
        reservation_id: Optional[UUID] = None,
    ) -> None:
        """Cancel a deposit intent that will never be paid; failures go to the operator queue"""
        try:
            await retry_once(
                lambda: self.payments.void(payment_intent_id),
                settings.payment_timeout_seconds,
                "payments.void",
                retry_on=(PaymentError,),
            )
        except (PaymentError, asyncio.TimeoutError) as e:
            logger.error("Deposit void failed", payment_intent_id=payment_intent_id, error=str(e) or type(e).__name__)
            await self._queue_alert(
                restaurant_id,
                "deposit_void_failed",
                reservation_id,
                {"payment_intent_id": payment_intent_id, "error": str(e) or type(e).__name__},
            )
            return

        logger.info("Deposit intent voided", payment_intent_id=payment_intent_id)

    async def _queue_alert(
        self,
        restaurant_id: UUID,
        kind: str,
        reservation_id: Optional[UUID],
        detail: Dict[str, Any],
    ) -> None:
        self.db.add(
            OperatorAlert(
                restaurant_id=restaurant_id,
                kind=kind,
                resource_type="reservation",
                resource_id=reservation_id,
                detail_json=detail,
            )
        )
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to queue operator alert", kind=kind, error=str(e), exc_info=True)

    def _clock_for(self, restaurant: Optional[Restaurant]) -> Clock:
        if self.clock is not None:
            return self.clock
        return SystemClock(restaurant.timezone if restaurant else None)

    def _invalidate(self, restaurant_id: UUID) -> None:
        if self.status_engine is not None:
            self.status_engine.invalidate(restaurant_id)

    def _event(self, reservation: Reservation, event_type: EventType) -> DomainEvent:
        return DomainEvent(
            type=event_type,
            restaurant_id=reservation.restaurant_id,
            resource_id=reservation.id,
            user_id=reservation.user_id,
            payload={
                "status": reservation.status,
                "date": reservation.date.isoformat() if reservation.date else None,
                "time": reservation.time.strftime("%H:%M") if reservation.time else None,
                "guest_count": reservation.guest_count,
                "source": reservation.source,
            },
        )


def _parse_status(value: str) -> ReservationStatus:
    try:
        return ReservationStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value}")
