"""Availability resolver: which tables and slots are free.

Slots match on exact (table, date, time). Two bookings at 19:00 and 19:15 on
the same table do not conflict unless the restaurant turns on the
``service_overlap_check`` flag, in which case a booking also blocks any start
time within one service duration of it.

Results are always computed from the store; nothing here is cached.
"""

from dataclasses import dataclass
from datetime import date, time
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.reservation import Reservation
from app.models.table import Table
from app.services.clock import minutes_between, parse_time, slot_time
from app.services.feature_flags import FeatureFlagService, SERVICE_OVERLAP_CHECK
from app.services.store import ReservationStore, ACTIVE_VALUES
from app.services.tables import TableRegistry

# Standard bookable slots: lunch 13:00-16:00, dinner 19:00-22:00
DEFAULT_SLOTS = [
    parse_time(s)
    for s in (
        "13:00", "13:30", "14:00", "14:30", "15:00", "15:30", "16:00",
        "19:00", "19:30", "20:00", "20:30", "21:00", "21:30", "22:00",
    )
]


@dataclass
class TimeSlot:
    """Candidate slot and whether any qualifying table is free"""
    time: time
    available: bool


class AvailabilityResolver:
    """Answers availability questions for one database session"""

    def __init__(
        self,
        db: AsyncSession,
        registry: TableRegistry,
        store: ReservationStore,
        flags: Optional[FeatureFlagService] = None,
        service_minutes: Optional[int] = None,
    ):
        self.db = db
        self.registry = registry
        self.store = store
        self.flags = flags
        self.service_minutes = service_minutes or settings.default_service_minutes

    async def find_available_tables(
        self,
        restaurant_id: UUID,
        day: date,
        at: time,
        party_size: int,
    ) -> List[Table]:
        """Active tables that fit the party and are free at (day, at)"""
        await self.registry.get_restaurant(restaurant_id)

        tables = await self.registry.list_for_restaurant(
            restaurant_id, active_only=True, min_capacity=party_size
        )
        if not tables:
            return []

        booked = await self._bookings_by_table(restaurant_id, day)
        overlap = await self._overlap_enabled(restaurant_id)

        return [
            table for table in tables
            if not self._slot_taken(booked.get(table.id, []), at, overlap)
        ]

    async def has_conflict(
        self,
        table_id: UUID,
        day: date,
        at: time,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> bool:
        """True iff a live reservation already holds this table slot"""
        at = slot_time(at)
        existing = await self.store.find_active_at(table_id, day, at, exclude_reservation_id)
        if existing is not None:
            return True

        if self.flags is None:
            return False

        table = await self.registry.get(table_id)
        if not await self._overlap_enabled(table.restaurant_id):
            return False

        same_day = await self.store.list_active_for_table_day(table_id, day, exclude_reservation_id)
        return self._slot_taken(same_day, at, overlap=True)

    async def list_open_slots(
        self,
        restaurant_id: UUID,
        day: date,
        party_size: int,
        candidate_slots: Optional[Sequence[time]] = None,
    ) -> List[TimeSlot]:
        """For each candidate slot, whether at least one qualifying table is free"""
        await self.registry.get_restaurant(restaurant_id)
        candidates = list(candidate_slots) if candidate_slots else DEFAULT_SLOTS

        tables = await self.registry.list_for_restaurant(
            restaurant_id, active_only=True, min_capacity=party_size
        )
        if not tables:
            return [TimeSlot(time=slot, available=False) for slot in candidates]

        booked = await self._bookings_by_table(restaurant_id, day)
        overlap = await self._overlap_enabled(restaurant_id)

        return [
            TimeSlot(
                time=slot,
                available=any(
                    not self._slot_taken(booked.get(table.id, []), slot, overlap)
                    for table in tables
                ),
            )
            for slot in candidates
        ]

    async def _bookings_by_table(self, restaurant_id: UUID, day: date) -> Dict[UUID, List[Reservation]]:
        reservations = await self.store.list_for_day(restaurant_id, day, statuses=ACTIVE_VALUES)
        booked: Dict[UUID, List[Reservation]] = {}
        for reservation in reservations:
            booked.setdefault(reservation.table_id, []).append(reservation)
        return booked

    async def _overlap_enabled(self, restaurant_id: UUID) -> bool:
        if self.flags is None:
            return False
        return await self.flags.is_enabled(SERVICE_OVERLAP_CHECK, restaurant_id)

    def _slot_taken(self, reservations: List[Reservation], at: time, overlap: bool) -> bool:
        for reservation in reservations:
            if _same_minute(reservation.time, at):
                return True
            if overlap and self._overlaps(reservation.time, at):
                return True
        return False

    def _overlaps(self, existing: time, requested: time) -> bool:
        # Same-day comparison; a slot never blocks the previous day's late service
        if requested >= existing:
            return minutes_between(existing, requested) < self.service_minutes
        return minutes_between(requested, existing) < self.service_minutes


def _same_minute(a: time, b: time) -> bool:
    return a.hour == b.hour and a.minute == b.minute
