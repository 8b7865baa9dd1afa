"""Tests for reservation creation and state transitions"""

import json
from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, func

from app.models.audit import AuditLog
from app.models.notification import OperatorAlert
from app.models.reservation import Reservation, ReservationSource, ReservationStatus
from app.models.table import TableStatus
from app.services.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from app.services.lifecycle import extract_code

TODAY = date(2026, 10, 16)
DAY = date(2026, 10, 20)


class TestCreate:
    @pytest.mark.asyncio
    async def test_creates_pending_reservation(self, lifecycle, publisher, test_customer, test_restaurant, test_tables):
        reservation = await lifecycle.create(
            test_customer, test_restaurant.id, test_tables[1].id, DAY, time(19, 0), 3,
            occasion="birthday",
        )

        assert reservation.status == ReservationStatus.PENDING.value
        assert reservation.source == ReservationSource.ONLINE.value
        assert reservation.user_id == test_customer.id
        assert reservation.qr_code.startswith("MF-")
        assert test_tables[1].status == TableStatus.PENDING.value
        assert publisher.types == ["reservation.created"]
        assert publisher.events[0].payload["time"] == "19:00"

    @pytest.mark.asyncio
    async def test_paid_deposit_confirms_immediately(self, lifecycle, test_customer, test_restaurant, test_tables):
        reservation = await lifecycle.create(
            test_customer, test_restaurant.id, test_tables[0].id, DAY, time(19, 0), 2,
            deposit_paid=True, deposit_amount=Decimal("20.00"), payment_intent_id="pi_paid",
        )

        assert reservation.status == ReservationStatus.CONFIRMED.value
        assert reservation.confirmed_at is not None
        assert reservation.deposit_paid_at is not None

    @pytest.mark.asyncio
    async def test_unpaid_deposit_opens_payment_intent(self, lifecycle, payments, test_customer, test_restaurant, test_tables):
        reservation = await lifecycle.create(
            test_customer, test_restaurant.id, test_tables[0].id, DAY, time(19, 0), 2,
            deposit_amount=Decimal("20.00"),
        )

        assert reservation.status == ReservationStatus.PENDING.value
        assert reservation.payment_intent_id == "pi_test_1"
        assert payments.charges[0]["metadata"]["slot"] == "2026-10-20 19:00"

    @pytest.mark.asyncio
    async def test_taken_slot_conflicts(self, lifecycle, test_customer, test_restaurant, test_tables, make_reservation):
        await make_reservation(test_tables[0], DAY, time(19, 0), status=ReservationStatus.PENDING.value)

        with pytest.raises(Conflict):
            await lifecycle.create(test_customer, test_restaurant.id, test_tables[0].id, DAY, time(19, 0), 2)

    @pytest.mark.asyncio
    async def test_same_table_other_time_is_fine(self, lifecycle, test_customer, test_restaurant, test_tables, make_reservation):
        await make_reservation(test_tables[0], DAY, time(19, 0))

        reservation = await lifecycle.create(
            test_customer, test_restaurant.id, test_tables[0].id, DAY, time(19, 15), 2
        )
        assert reservation.time == time(19, 15)

    @pytest.mark.asyncio
    async def test_party_too_large(self, lifecycle, test_customer, test_restaurant, test_tables):
        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.create(test_customer, test_restaurant.id, test_tables[0].id, DAY, time(19, 0), 3)
        assert "capacity of 2" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_guest_count_must_be_positive(self, lifecycle, test_customer, test_restaurant, test_tables):
        with pytest.raises(ValidationError):
            await lifecycle.create(test_customer, test_restaurant.id, test_tables[0].id, DAY, time(19, 0), 0)

    @pytest.mark.asyncio
    async def test_closed_on_holiday(self, lifecycle, test_customer, test_restaurant, test_tables):
        with pytest.raises(ValidationError):
            await lifecycle.create(
                test_customer, test_restaurant.id, test_tables[0].id, date(2026, 12, 25), time(19, 0), 2
            )

    @pytest.mark.asyncio
    async def test_inactive_table(self, test_db, lifecycle, test_customer, test_restaurant, test_tables):
        test_tables[0].is_active = False
        await test_db.commit()

        with pytest.raises(ValidationError):
            await lifecycle.create(test_customer, test_restaurant.id, test_tables[0].id, DAY, time(19, 0), 2)

    @pytest.mark.asyncio
    async def test_unknown_restaurant_and_table(self, lifecycle, test_customer, test_restaurant, test_tables):
        with pytest.raises(NotFound):
            await lifecycle.create(test_customer, uuid4(), test_tables[0].id, DAY, time(19, 0), 2)
        with pytest.raises(NotFound):
            await lifecycle.create(test_customer, test_restaurant.id, uuid4(), DAY, time(19, 0), 2)


@pytest.mark.asyncio
async def test_store_rejects_second_live_booking_for_slot(test_db, store, test_restaurant, test_tables):
    """The unique index catches a double booking the pre-check missed"""
    restaurant_id = test_restaurant.id
    table_id = test_tables[0].id

    def booking(code):
        return Reservation(
            restaurant_id=restaurant_id,
            table_id=table_id,
            date=DAY,
            time=time(19, 0),
            guest_count=2,
            status=ReservationStatus.PENDING.value,
            source=ReservationSource.ONLINE.value,
            qr_code=code,
        )

    await store.insert(booking("MF-FIRST"))
    await store.commit()

    with pytest.raises(Conflict):
        await store.insert(booking("MF-SECOND"))

    count = await test_db.execute(
        select(func.count(Reservation.id)).where(Reservation.table_id == table_id)
    )
    assert count.scalar() == 1


class TestTransitions:
    @pytest.mark.asyncio
    async def test_happy_path(self, lifecycle, publisher, test_staff, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(19, 0), status=ReservationStatus.PENDING.value)

        confirmed = await lifecycle.confirm(reservation.id, test_staff)
        assert confirmed.status == ReservationStatus.CONFIRMED.value
        assert confirmed.confirmed_at is not None
        assert test_tables[0].status == TableStatus.RESERVED.value

        arrived = await lifecycle.arrive(reservation.id, test_staff)
        assert arrived.status == ReservationStatus.ARRIVED.value
        assert test_tables[0].status == TableStatus.OCCUPIED.value

        seated = await lifecycle.seat(reservation.id, test_staff)
        assert seated.status == ReservationStatus.SEATED.value
        assert seated.seated_at is not None

        completed = await lifecycle.complete(reservation.id, test_staff)
        assert completed.status == ReservationStatus.COMPLETED.value
        assert completed.completed_at is not None
        assert test_tables[0].status == TableStatus.AVAILABLE.value

        assert publisher.types == [
            "reservation.confirmed",
            "reservation.arrived",
            "reservation.seated",
            "reservation.completed",
        ]

    @pytest.mark.asyncio
    async def test_transitions_are_audited(self, test_db, lifecycle, test_staff, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(19, 0), status=ReservationStatus.PENDING.value)
        await lifecycle.confirm(reservation.id, test_staff)

        result = await test_db.execute(select(AuditLog).where(AuditLog.resource_id == reservation.id))
        entry = result.scalar_one()
        assert entry.action == "confirm"
        assert entry.actor_id == test_staff.id
        assert entry.data_json["before"]["status"] == "pending"
        assert entry.data_json["after"]["status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_cannot_seat_pending(self, lifecycle, test_staff, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(19, 0), status=ReservationStatus.PENDING.value)

        with pytest.raises(InvalidState):
            await lifecycle.seat(reservation.id, test_staff)

    @pytest.mark.asyncio
    async def test_terminal_states_are_final(self, lifecycle, publisher, test_staff, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(19, 0))
        await lifecycle.complete(reservation.id, test_staff)

        for action in (lifecycle.confirm, lifecycle.arrive, lifecycle.seat, lifecycle.no_show, lifecycle.complete):
            with pytest.raises(InvalidState):
                await action(reservation.id, test_staff)
        with pytest.raises(InvalidState):
            await lifecycle.cancel(reservation.id, "changed plans", test_staff)

        assert publisher.types == ["reservation.completed"]

    @pytest.mark.asyncio
    async def test_set_status_dispatch(self, lifecycle, test_staff, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(19, 0), status=ReservationStatus.PENDING.value)

        with pytest.raises(ValidationError):
            await lifecycle.set_status(reservation.id, "pending", test_staff)
        with pytest.raises(ValidationError):
            await lifecycle.set_status(reservation.id, "teleported", test_staff)

        updated = await lifecycle.set_status(reservation.id, "no_show", test_staff)
        assert updated.status == ReservationStatus.NO_SHOW.value

    @pytest.mark.asyncio
    async def test_customers_cannot_drive_transitions(self, lifecycle, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(
            test_tables[0], TODAY, time(19, 0), status=ReservationStatus.PENDING.value, user=test_customer
        )

        with pytest.raises(Forbidden):
            await lifecycle.confirm(reservation.id, test_customer)


class TestCancel:
    @pytest.mark.asyncio
    async def test_owner_cancels_and_deposit_is_refunded(self, lifecycle, payments, publisher, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(
            test_tables[0], DAY, time(19, 0), user=test_customer,
            deposit_paid=True, deposit_amount=Decimal("20.00"), payment_intent_id="pi_123",
        )

        cancelled = await lifecycle.cancel(reservation.id, "Change of plans", test_customer)

        assert cancelled.status == ReservationStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "Change of plans"
        assert cancelled.cancelled_at is not None
        assert test_tables[0].status == TableStatus.AVAILABLE.value
        assert payments.refunds == ["pi_123"]
        assert publisher.types == ["reservation.cancelled"]

    @pytest.mark.asyncio
    async def test_refund_is_retried_once(self, lifecycle, payments, test_customer, test_tables, make_reservation):
        payments.refund_failures = 1
        reservation = await make_reservation(
            test_tables[0], DAY, time(19, 0), user=test_customer,
            deposit_paid=True, payment_intent_id="pi_retry",
        )

        await lifecycle.cancel(reservation.id, None, test_customer)

        assert payments.refund_attempts == 2
        assert payments.refunds == ["pi_retry"]

    @pytest.mark.asyncio
    async def test_failed_refund_goes_to_operator_queue(self, test_db, lifecycle, payments, test_customer, test_tables, make_reservation):
        payments.refund_failures = 2
        reservation = await make_reservation(
            test_tables[0], DAY, time(19, 0), user=test_customer,
            deposit_paid=True, deposit_amount=Decimal("20.00"), payment_intent_id="pi_fail",
        )

        cancelled = await lifecycle.cancel(reservation.id, None, test_customer)
        assert cancelled.status == ReservationStatus.CANCELLED.value

        result = await test_db.execute(select(OperatorAlert))
        alert = result.scalar_one()
        assert alert.kind == "refund_failed"
        assert alert.resource_id == reservation.id
        assert alert.detail_json["payment_intent_id"] == "pi_fail"
        assert alert.detail_json["error"] == "card_declined"

    @pytest.mark.asyncio
    async def test_no_refund_without_deposit(self, lifecycle, payments, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], DAY, time(19, 0), user=test_customer)

        await lifecycle.cancel(reservation.id, None, test_customer)
        assert payments.refund_attempts == 0

    @pytest.mark.asyncio
    async def test_unpaid_intent_is_voided_not_refunded(self, lifecycle, payments, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(
            test_tables[0], DAY, time(19, 0), user=test_customer, status=ReservationStatus.PENDING.value,
            deposit_paid=False, deposit_amount=Decimal("20.00"), payment_intent_id="pi_open",
        )

        await lifecycle.cancel(reservation.id, None, test_customer)

        assert payments.voids == ["pi_open"]
        assert payments.refund_attempts == 0

    @pytest.mark.asyncio
    async def test_strangers_cannot_cancel(self, lifecycle, test_customer, other_customer, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], DAY, time(19, 0), user=test_customer)

        with pytest.raises(Forbidden):
            await lifecycle.cancel(reservation.id, None, other_customer)

    @pytest.mark.asyncio
    async def test_cancel_twice(self, lifecycle, test_staff, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], DAY, time(19, 0))
        await lifecycle.cancel(reservation.id, None, test_staff)

        with pytest.raises(InvalidState):
            await lifecycle.cancel(reservation.id, None, test_staff)

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_booked_again(self, lifecycle, test_customer, test_restaurant, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], DAY, time(19, 0), user=test_customer)
        await lifecycle.cancel(reservation.id, None, test_customer)

        rebooked = await lifecycle.create(test_customer, test_restaurant.id, test_tables[0].id, DAY, time(19, 0), 2)
        assert rebooked.status == ReservationStatus.PENDING.value


class TestDeposit:
    async def _pending_with_intent(self, lifecycle, customer, restaurant, table):
        return await lifecycle.create(
            customer, restaurant.id, table.id, DAY, time(19, 0), 2,
            deposit_amount=Decimal("20.00"),
        )

    @pytest.mark.asyncio
    async def test_paid_deposit_confirms_booking(self, lifecycle, payments, publisher, test_customer, test_restaurant, test_tables):
        reservation = await self._pending_with_intent(lifecycle, test_customer, test_restaurant, test_tables[0])
        payments.paid.add("pi_test_1")

        confirmed = await lifecycle.confirm_deposit(reservation.id, "pi_test_1", test_customer)

        assert confirmed.status == ReservationStatus.CONFIRMED.value
        assert confirmed.deposit_paid is True
        assert confirmed.deposit_paid_at is not None
        assert confirmed.confirmed_at is not None
        assert test_tables[0].status == TableStatus.RESERVED.value
        assert publisher.types == ["reservation.created", "reservation.confirmed"]

    @pytest.mark.asyncio
    async def test_confirmed_deposit_is_refunded_on_cancel(self, lifecycle, payments, test_customer, test_restaurant, test_tables):
        reservation = await self._pending_with_intent(lifecycle, test_customer, test_restaurant, test_tables[0])
        payments.paid.add("pi_test_1")
        await lifecycle.confirm_deposit(reservation.id, "pi_test_1", test_customer)

        await lifecycle.cancel(reservation.id, None, test_customer)

        assert payments.refunds == ["pi_test_1"]
        assert payments.voids == []

    @pytest.mark.asyncio
    async def test_stored_intent_is_used_by_default(self, lifecycle, payments, test_customer, test_restaurant, test_tables):
        reservation = await self._pending_with_intent(lifecycle, test_customer, test_restaurant, test_tables[0])
        payments.paid.add("pi_test_1")

        confirmed = await lifecycle.confirm_deposit(reservation.id, actor=test_customer)
        assert confirmed.payment_intent_id == "pi_test_1"
        assert confirmed.status == ReservationStatus.CONFIRMED.value

    @pytest.mark.asyncio
    async def test_unpaid_intent_keeps_booking_pending(self, lifecycle, publisher, test_customer, test_restaurant, test_tables):
        reservation = await self._pending_with_intent(lifecycle, test_customer, test_restaurant, test_tables[0])

        with pytest.raises(ValidationError):
            await lifecycle.confirm_deposit(reservation.id, "pi_test_1", test_customer)

        assert reservation.status == ReservationStatus.PENDING.value
        assert reservation.deposit_paid is False
        assert publisher.types == ["reservation.created"]

    @pytest.mark.asyncio
    async def test_intent_must_match_reservation(self, lifecycle, payments, test_customer, test_restaurant, test_tables):
        reservation = await self._pending_with_intent(lifecycle, test_customer, test_restaurant, test_tables[0])
        payments.paid.add("pi_someone_else")

        with pytest.raises(ValidationError):
            await lifecycle.confirm_deposit(reservation.id, "pi_someone_else", test_customer)

    @pytest.mark.asyncio
    async def test_strangers_cannot_confirm(self, lifecycle, payments, test_customer, other_customer, test_restaurant, test_tables):
        reservation = await self._pending_with_intent(lifecycle, test_customer, test_restaurant, test_tables[0])
        payments.paid.add("pi_test_1")

        with pytest.raises(Forbidden):
            await lifecycle.confirm_deposit(reservation.id, "pi_test_1", other_customer)

    @pytest.mark.asyncio
    async def test_cancelled_booking_takes_no_deposit(self, lifecycle, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(
            test_tables[0], DAY, time(19, 0), user=test_customer,
            status=ReservationStatus.CANCELLED.value, payment_intent_id="pi_late",
        )

        with pytest.raises(InvalidState):
            await lifecycle.confirm_deposit(reservation.id, "pi_late", test_customer)

    @pytest.mark.asyncio
    async def test_intent_is_voided_when_insert_conflicts(self, monkeypatch, lifecycle, payments, test_customer, test_restaurant, test_tables, make_reservation):
        await make_reservation(test_tables[0], DAY, time(19, 0))
        restaurant_id, table_id = test_restaurant.id, test_tables[0].id

        async def no_conflict(*args, **kwargs):
            return False

        monkeypatch.setattr(lifecycle.resolver, "has_conflict", no_conflict)

        with pytest.raises(Conflict):
            await lifecycle.create(
                test_customer, restaurant_id, table_id, DAY, time(19, 0), 2,
                deposit_amount=Decimal("20.00"),
            )

        assert len(payments.charges) == 1
        assert payments.voids == ["pi_test_1"]


class TestReschedule:
    @pytest.mark.asyncio
    async def test_moves_to_new_slot(self, lifecycle, publisher, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(
            test_tables[1], DAY, time(19, 0), user=test_customer, end_time=time(20, 30)
        )

        moved = await lifecycle.reschedule(reservation.id, test_customer, at=time(20, 0), guest_count=4)

        assert moved.time == time(20, 0)
        assert moved.guest_count == 4
        assert moved.end_time is None
        assert moved.status == ReservationStatus.CONFIRMED.value
        assert publisher.types == ["reservation.rescheduled"]

    @pytest.mark.asyncio
    async def test_conflict_with_other_booking(self, lifecycle, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], DAY, time(19, 0), user=test_customer)
        await make_reservation(test_tables[0], DAY, time(20, 0))

        with pytest.raises(Conflict):
            await lifecycle.reschedule(reservation.id, test_customer, at=time(20, 0))

    @pytest.mark.asyncio
    async def test_same_slot_does_not_conflict_with_itself(self, lifecycle, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[1], DAY, time(19, 0), user=test_customer)

        moved = await lifecycle.reschedule(reservation.id, test_customer, day=DAY, at=time(19, 0), guest_count=3)
        assert moved.guest_count == 3

    @pytest.mark.asyncio
    async def test_requires_a_change(self, lifecycle, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], DAY, time(19, 0), user=test_customer)

        with pytest.raises(ValidationError):
            await lifecycle.reschedule(reservation.id, test_customer)

    @pytest.mark.asyncio
    async def test_only_pending_or_confirmed(self, lifecycle, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(
            test_tables[0], TODAY, time(17, 0), user=test_customer, status=ReservationStatus.SEATED.value
        )

        with pytest.raises(InvalidState):
            await lifecycle.reschedule(reservation.id, test_customer, at=time(20, 0))

    @pytest.mark.asyncio
    async def test_capacity_still_applies(self, lifecycle, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], DAY, time(19, 0), user=test_customer)

        with pytest.raises(ValidationError):
            await lifecycle.reschedule(reservation.id, test_customer, guest_count=5)

    @pytest.mark.asyncio
    async def test_holiday_rejected(self, lifecycle, test_customer, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], DAY, time(19, 0), user=test_customer)

        with pytest.raises(ValidationError):
            await lifecycle.reschedule(reservation.id, test_customer, day=date(2026, 12, 25))


class TestRepeat:
    @pytest.mark.asyncio
    async def test_books_same_table_and_party(self, lifecycle, test_customer, test_tables, make_reservation):
        source = await make_reservation(
            test_tables[1], TODAY, time(13, 0), user=test_customer, guest_count=3,
            status=ReservationStatus.COMPLETED.value, occasion="anniversary",
        )

        again = await lifecycle.repeat(source.id, DAY, time(20, 0), test_customer)

        assert again.id != source.id
        assert again.table_id == source.table_id
        assert again.guest_count == 3
        assert again.occasion == "anniversary"
        assert again.status == ReservationStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_only_own_reservations(self, lifecycle, test_customer, other_customer, test_tables, make_reservation):
        source = await make_reservation(test_tables[1], TODAY, time(13, 0), user=test_customer)

        with pytest.raises(NotFound):
            await lifecycle.repeat(source.id, DAY, time(20, 0), other_customer)


class TestVerifyCode:
    def test_extract_code(self):
        assert extract_code("  MF-ABC123  ") == "MF-ABC123"
        assert extract_code(json.dumps({"code": "MF-XYZ"})) == "MF-XYZ"
        assert extract_code(json.dumps({"reservationId": "abc"})) == "abc"
        with pytest.raises(ValidationError):
            extract_code("   ")

    @pytest.mark.asyncio
    async def test_lookup_by_code_and_id(self, lifecycle, test_staff, test_restaurant, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(19, 0))

        by_code, arrived = await lifecycle.verify_code(test_restaurant.id, reservation.qr_code, actor=test_staff)
        assert by_code.id == reservation.id
        assert arrived is False

        by_id, _ = await lifecycle.verify_code(
            test_restaurant.id, json.dumps({"reservationId": str(reservation.id)}), actor=test_staff
        )
        assert by_id.id == reservation.id

    @pytest.mark.asyncio
    async def test_auto_arrive(self, lifecycle, publisher, test_staff, test_restaurant, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(19, 0))

        checked_in, arrived = await lifecycle.verify_code(
            test_restaurant.id, reservation.qr_code, auto_arrive=True, actor=test_staff
        )

        assert arrived is True
        assert checked_in.status == ReservationStatus.ARRIVED.value
        assert publisher.types == ["reservation.arrived"]

    @pytest.mark.asyncio
    async def test_auto_arrive_skips_seated(self, lifecycle, test_staff, test_restaurant, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(17, 30), status=ReservationStatus.SEATED.value)

        found, arrived = await lifecycle.verify_code(
            test_restaurant.id, reservation.qr_code, auto_arrive=True, actor=test_staff
        )
        assert arrived is False
        assert found.status == ReservationStatus.SEATED.value

    @pytest.mark.asyncio
    async def test_unknown_code(self, lifecycle, test_staff, test_restaurant, test_tables):
        with pytest.raises(NotFound):
            await lifecycle.verify_code(test_restaurant.id, "MF-NOPE", actor=test_staff)


class TestReleaseTable:
    @pytest.mark.asyncio
    async def test_completes_seated_party(self, test_db, lifecycle, publisher, test_staff, test_restaurant, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(17, 0), status=ReservationStatus.SEATED.value)
        test_tables[0].status = TableStatus.OCCUPIED.value
        await test_db.commit()

        table, completed = await lifecycle.release_table(test_restaurant.id, test_tables[0].id, test_staff)

        assert table.status == TableStatus.AVAILABLE.value
        assert completed.id == reservation.id
        assert completed.status == ReservationStatus.COMPLETED.value
        assert publisher.types == ["reservation.completed"]

    @pytest.mark.asyncio
    async def test_future_booking_is_left_alone(self, lifecycle, publisher, test_staff, test_restaurant, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], DAY, time(19, 0))

        table, completed = await lifecycle.release_table(test_restaurant.id, test_tables[0].id, test_staff)

        assert completed is None
        assert table.status == TableStatus.AVAILABLE.value
        assert reservation.status == ReservationStatus.CONFIRMED.value
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_later_booking_today_is_left_alone(self, lifecycle, publisher, test_staff, test_restaurant, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(21, 0))

        table, completed = await lifecycle.release_table(test_restaurant.id, test_tables[0].id, test_staff)

        assert completed is None
        assert table.status == TableStatus.AVAILABLE.value
        assert reservation.status == ReservationStatus.CONFIRMED.value
        assert reservation.completed_at is None
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_booking_under_way_is_completed(self, lifecycle, test_staff, test_restaurant, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(17, 30))

        _, completed = await lifecycle.release_table(test_restaurant.id, test_tables[0].id, test_staff)

        assert completed.id == reservation.id
        assert completed.status == ReservationStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_invalid_edit_releases_nothing(self, test_db, lifecycle, publisher, test_staff, test_restaurant, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(17, 0), status=ReservationStatus.SEATED.value)
        test_tables[0].status = TableStatus.OCCUPIED.value
        await test_db.commit()

        with pytest.raises(ValidationError):
            await lifecycle.release_table(test_restaurant.id, test_tables[0].id, test_staff, changes={"capacity": 0})

        assert reservation.status == ReservationStatus.SEATED.value
        assert test_tables[0].status == TableStatus.OCCUPIED.value
        assert test_tables[0].capacity == 2
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_edits_commit_with_release(self, test_db, lifecycle, test_staff, test_restaurant, test_tables, make_reservation):
        await make_reservation(test_tables[0], TODAY, time(17, 0), status=ReservationStatus.SEATED.value)

        table, completed = await lifecycle.release_table(
            test_restaurant.id, test_tables[0].id, test_staff, changes={"capacity": 8, "status": "available"}
        )

        assert completed.status == ReservationStatus.COMPLETED.value
        assert table.capacity == 8
        assert table.status == TableStatus.AVAILABLE.value


class TestWalkIn:
    @pytest.mark.asyncio
    async def test_seats_party_on_free_table(self, lifecycle, publisher, test_staff, test_restaurant, test_tables):
        reservation = await lifecycle.assign_walk_in(
            test_restaurant.id, test_tables[1].id, 3, test_staff, name="Ana", phone="+15550002222"
        )

        assert reservation.status == ReservationStatus.SEATED.value
        assert reservation.source == ReservationSource.WALK_IN.value
        assert reservation.user_id is None
        assert reservation.date == TODAY
        assert reservation.time == time(18, 0)
        assert reservation.end_time == time(19, 30)
        assert reservation.qr_code.startswith("WI-")
        assert "Ana" in reservation.internal_notes
        assert test_tables[1].status == TableStatus.OCCUPIED.value
        assert publisher.types == ["reservation.seated"]

    @pytest.mark.asyncio
    async def test_allowed_when_next_booking_is_far_enough(self, lifecycle, test_staff, test_restaurant, test_tables, make_reservation):
        await make_reservation(test_tables[1], TODAY, time(19, 0))

        reservation = await lifecycle.assign_walk_in(test_restaurant.id, test_tables[1].id, 2, test_staff)
        assert reservation.status == ReservationStatus.SEATED.value

    @pytest.mark.asyncio
    async def test_rejected_when_next_booking_is_close(self, lifecycle, test_staff, test_restaurant, test_tables, make_reservation):
        await make_reservation(test_tables[1], TODAY, time(18, 45))

        with pytest.raises(Conflict):
            await lifecycle.assign_walk_in(test_restaurant.id, test_tables[1].id, 2, test_staff)

    @pytest.mark.asyncio
    async def test_rejected_on_occupied_table(self, lifecycle, test_staff, test_restaurant, test_tables, make_reservation):
        await make_reservation(test_tables[1], TODAY, time(17, 30), status=ReservationStatus.SEATED.value)

        with pytest.raises(Conflict):
            await lifecycle.assign_walk_in(test_restaurant.id, test_tables[1].id, 2, test_staff)

    @pytest.mark.asyncio
    async def test_party_must_fit(self, lifecycle, test_staff, test_restaurant, test_tables):
        with pytest.raises(ValidationError):
            await lifecycle.assign_walk_in(test_restaurant.id, test_tables[0].id, 3, test_staff)

    @pytest.mark.asyncio
    async def test_staff_only(self, lifecycle, test_customer, test_restaurant, test_tables):
        with pytest.raises(Forbidden):
            await lifecycle.assign_walk_in(test_restaurant.id, test_tables[0].id, 2, test_customer)


@pytest.mark.asyncio
async def test_expire_overdue_marks_no_shows(lifecycle, publisher, test_restaurant, test_tables, make_reservation):
    late = await make_reservation(test_tables[0], TODAY, time(17, 0), status=ReservationStatus.PENDING.value)
    within_grace = await make_reservation(test_tables[1], TODAY, time(17, 45))
    seated = await make_reservation(test_tables[2], TODAY, time(17, 0), status=ReservationStatus.SEATED.value)

    expired = await lifecycle.expire_overdue(test_restaurant.id)

    assert [r.id for r in expired] == [late.id]
    assert late.status == ReservationStatus.NO_SHOW.value
    assert within_grace.status == ReservationStatus.CONFIRMED.value
    assert seated.status == ReservationStatus.SEATED.value
    assert publisher.types == ["reservation.no_show"]


@pytest.mark.asyncio
async def test_list_for_user_stats(lifecycle, test_customer, test_tables, make_reservation):
    await make_reservation(test_tables[0], DAY, time(19, 0), user=test_customer)
    await make_reservation(test_tables[1], date(2026, 10, 1), time(19, 0), user=test_customer, status=ReservationStatus.COMPLETED.value)
    await make_reservation(test_tables[2], date(2026, 10, 2), time(19, 0), user=test_customer, status=ReservationStatus.CANCELLED.value)

    reservations, stats = await lifecycle.list_for_user(test_customer.id)
    assert stats == {"total": 3, "completed": 1, "cancelled": 1, "no_show": 0, "upcoming": 1}
    assert reservations[0].date == DAY

    upcoming, _ = await lifecycle.list_for_user(test_customer.id, upcoming=True)
    assert [r.date for r in upcoming] == [DAY]
