"""Table logical status engine.

Derives a time-aware occupancy label for every active table of a restaurant
from today's reservations and the current clock. This is the read model for
floor plans and for walk-in seating; it never writes.
"""

from dataclasses import dataclass
from datetime import time
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.models.reservation import Reservation, ReservationStatus
from app.models.table import Table, OUT_OF_SERVICE_STATUSES
from app.services.cache import TTLCache
from app.services.clock import Clock, SystemClock, minutes_between, slot_end, within_window
from app.services.errors import NotFound
from app.services.store import ReservationStore, HIDDEN_FROM_FLOOR
from app.services.tables import TableRegistry

logger = structlog.get_logger()

# An OCCUPIED table past its end time reports 0 minutes left rather than wrapping
# to the next day; guests may be seated this long before their slot
_EARLY_SEATING_SLACK_MINUTES = 120

_ON_SITE = (ReservationStatus.ARRIVED.value, ReservationStatus.SEATED.value)
_UPCOMING = (ReservationStatus.PENDING.value, ReservationStatus.CONFIRMED.value)


class LogicalStatus(str, Enum):
    FREE = "FREE"
    RESERVED = "RESERVED"
    OCCUPIED = "OCCUPIED"
    NEXT_RESERVATION = "NEXT_RESERVATION"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


@dataclass
class TableStatusReport:
    table_id: UUID
    number: int
    logical_status: LogicalStatus
    physical_status: str
    current_reservation: Optional[Reservation] = None
    next_reservation: Optional[Reservation] = None
    remaining_minutes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_id": str(self.table_id),
            "number": self.number,
            "logical_status": self.logical_status.value,
            "physical_status": self.physical_status,
            "current_reservation": _reservation_summary(self.current_reservation),
            "next_reservation": _reservation_summary(self.next_reservation),
            "remaining_minutes": self.remaining_minutes,
        }


def _reservation_summary(reservation: Optional[Reservation]) -> Optional[Dict[str, Any]]:
    if reservation is None:
        return None
    return {
        "id": str(reservation.id),
        "status": reservation.status,
        "time": reservation.time.strftime("%H:%M") if reservation.time else None,
        "end_time": reservation.end_time.strftime("%H:%M") if reservation.end_time else None,
        "guest_count": reservation.guest_count,
        "source": reservation.source,
    }


def holds_table(reservation: Reservation, now: time, service_minutes: int) -> bool:
    """True if a reservation for today has its table at ``now``.

    Guests on site always do. A confirmed booking holds the table from its
    start until its service ends; before its start time it does not.
    """
    if reservation.status in _ON_SITE:
        return True
    if reservation.status != ReservationStatus.CONFIRMED.value or reservation.time > now:
        return False
    end = slot_end(reservation.time, service_minutes, reservation.end_time)
    return within_window(now, reservation.time, end)


class TableStatusEngine:
    """Computes :class:`TableStatusReport` rows; optionally caches per restaurant"""

    def __init__(
        self,
        db: AsyncSession,
        registry: TableRegistry,
        store: ReservationStore,
        clock: Optional[Clock] = None,
        cache: Optional[TTLCache] = None,
        service_minutes: Optional[int] = None,
        reserved_soon_minutes: Optional[int] = None,
        next_reservation_minutes: Optional[int] = None,
    ):
        self.db = db
        self.registry = registry
        self.store = store
        self.clock = clock
        self.cache = cache
        self.service_minutes = service_minutes or settings.default_service_minutes
        self.reserved_soon_minutes = reserved_soon_minutes or settings.reserved_soon_minutes
        self.next_reservation_minutes = next_reservation_minutes or settings.next_reservation_minutes

    async def report(self, restaurant_id: UUID, use_cache: bool = True) -> List[TableStatusReport]:
        """Status of every active table, ordered by table number"""
        if use_cache and self.cache is not None:
            cached = self.cache.get(restaurant_id)
            if cached is not None:
                return cached

        restaurant = await self.registry.get_restaurant(restaurant_id)
        clock = self.clock or SystemClock(restaurant.timezone)
        now = clock.now()

        tables = await self.registry.list_for_restaurant(restaurant_id, active_only=True)
        reservations = await self.store.list_for_day(
            restaurant_id, now.date(), excluded_statuses=HIDDEN_FROM_FLOOR
        )

        by_table: Dict[UUID, List[Reservation]] = {}
        for reservation in reservations:
            by_table.setdefault(reservation.table_id, []).append(reservation)

        current_time = now.time().replace(microsecond=0)
        reports = [
            self.derive(table, by_table.get(table.id, []), current_time)
            for table in tables
        ]

        if self.cache is not None:
            self.cache.set(restaurant_id, reports)
        return reports

    async def status_for_table(
        self,
        restaurant_id: UUID,
        table_id: UUID,
        use_cache: bool = True,
    ) -> TableStatusReport:
        for entry in await self.report(restaurant_id, use_cache=use_cache):
            if entry.table_id == table_id:
                return entry
        raise NotFound("Table not found")

    def invalidate(self, restaurant_id: UUID) -> None:
        if self.cache is not None:
            self.cache.invalidate(restaurant_id)

    def derive(self, table: Table, reservations: List[Reservation], now: time) -> TableStatusReport:
        """Label one table given its reservations for today"""
        ordered = sorted(reservations, key=lambda r: r.time)

        current = next((r for r in ordered if holds_table(r, now, self.service_minutes)), None)
        upcoming = next(
            (r for r in ordered if r.time > now and r.status in _UPCOMING),
            None,
        )

        remaining = None
        if table.status in OUT_OF_SERVICE_STATUSES:
            label = LogicalStatus.OUT_OF_SERVICE
        elif current is not None:
            label = LogicalStatus.OCCUPIED
            remaining = self._remaining_service(current, now)
        elif upcoming is not None:
            remaining = minutes_between(now, upcoming.time)
            if remaining <= self.reserved_soon_minutes:
                label = LogicalStatus.RESERVED
            elif remaining <= self.next_reservation_minutes:
                label = LogicalStatus.NEXT_RESERVATION
            else:
                label = LogicalStatus.FREE
        else:
            label = LogicalStatus.FREE

        return TableStatusReport(
            table_id=table.id,
            number=table.number,
            logical_status=label,
            physical_status=table.status,
            current_reservation=current,
            next_reservation=upcoming,
            remaining_minutes=remaining,
        )

    def _end_of(self, reservation: Reservation) -> time:
        return slot_end(reservation.time, self.service_minutes, reservation.end_time)

    def _remaining_service(self, reservation: Reservation, now: time) -> int:
        end = self._end_of(reservation)
        remaining = minutes_between(now, end)
        if remaining > minutes_between(reservation.time, end) + _EARLY_SEATING_SLACK_MINUTES:
            return 0
        return remaining
