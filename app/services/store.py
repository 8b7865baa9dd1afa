"""Reservation store: persistence and queries for reservation rows"""

from datetime import date, time
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.models.reservation import Reservation, ReservationStatus, ACTIVE_STATUSES
from app.models.table import Table
from app.services.errors import Conflict, NotFound
from app.services.tables import TableRegistry, check_capacity

logger = structlog.get_logger()

ACTIVE_VALUES = [s.value for s in ACTIVE_STATUSES]

# Statuses that never show up in occupancy views
HIDDEN_FROM_FLOOR = [ReservationStatus.CANCELLED.value, ReservationStatus.NO_SHOW.value]


class ReservationStore:
    """Reservation persistence for one database session.

    ``insert`` and ``commit`` turn a violation of the active-slot unique index
    into :class:`Conflict`; that index, not the availability pre-check, is what
    prevents double booking under concurrent requests.
    """

    def __init__(self, db: AsyncSession, registry: TableRegistry):
        self.db = db
        self.registry = registry

    async def get(self, reservation_id: UUID) -> Reservation:
        result = await self.db.execute(select(Reservation).where(Reservation.id == reservation_id))
        reservation = result.scalar_one_or_none()
        if not reservation:
            raise NotFound("Reservation not found")
        return reservation

    async def find_by_code(self, restaurant_id: UUID, code: str) -> Optional[Reservation]:
        """Look a reservation up by QR code, then by id"""
        result = await self.db.execute(
            select(Reservation).where(
                Reservation.restaurant_id == restaurant_id,
                Reservation.qr_code == code,
            )
        )
        reservation = result.scalar_one_or_none()
        if reservation:
            return reservation

        try:
            reservation_id = UUID(code)
        except ValueError:
            return None

        result = await self.db.execute(
            select(Reservation).where(
                Reservation.restaurant_id == restaurant_id,
                Reservation.id == reservation_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_active_at(
        self,
        table_id: UUID,
        day: date,
        at: time,
        exclude_id: Optional[UUID] = None,
    ) -> Optional[Reservation]:
        """Live reservation holding exactly this slot, if any"""
        query = select(Reservation).where(
            Reservation.table_id == table_id,
            Reservation.date == day,
            Reservation.time == at,
            Reservation.status.in_(ACTIVE_VALUES),
        )
        if exclude_id is not None:
            query = query.where(Reservation.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def list_active_for_table_day(
        self,
        table_id: UUID,
        day: date,
        exclude_id: Optional[UUID] = None,
    ) -> List[Reservation]:
        query = select(Reservation).where(
            Reservation.table_id == table_id,
            Reservation.date == day,
            Reservation.status.in_(ACTIVE_VALUES),
        )
        if exclude_id is not None:
            query = query.where(Reservation.id != exclude_id)
        result = await self.db.execute(query.order_by(Reservation.time))
        return list(result.scalars().all())

    async def list_for_day(
        self,
        restaurant_id: UUID,
        day: date,
        statuses: Optional[Iterable[str]] = None,
        excluded_statuses: Optional[Iterable[str]] = None,
    ) -> List[Reservation]:
        query = select(Reservation).where(
            Reservation.restaurant_id == restaurant_id,
            Reservation.date == day,
        )
        if statuses is not None:
            query = query.where(Reservation.status.in_(list(statuses)))
        if excluded_statuses is not None:
            query = query.where(Reservation.status.not_in(list(excluded_statuses)))
        result = await self.db.execute(query.order_by(Reservation.time))
        return list(result.scalars().all())

    async def list_for_restaurant(
        self,
        restaurant_id: UUID,
        day: Optional[date] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Reservation], int]:
        query = select(Reservation).where(Reservation.restaurant_id == restaurant_id)
        count_query = select(func.count(Reservation.id)).where(Reservation.restaurant_id == restaurant_id)

        if day:
            query = query.where(Reservation.date == day)
            count_query = count_query.where(Reservation.date == day)

        if status:
            query = query.where(Reservation.status == status)
            count_query = count_query.where(Reservation.status == status)

        total_result = await self.db.execute(count_query)
        total = total_result.scalar()

        query = query.order_by(Reservation.date, Reservation.time).offset(offset).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def list_for_user(
        self,
        user_id: UUID,
        status: Optional[str] = None,
        from_date: Optional[date] = None,
    ) -> List[Reservation]:
        query = select(Reservation).where(Reservation.user_id == user_id)
        if status:
            query = query.where(Reservation.status == status)
        if from_date:
            query = query.where(Reservation.date >= from_date)
        query = query.order_by(Reservation.date.desc(), Reservation.time.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_table_holders(self, table_id: UUID) -> List[Reservation]:
        """Reservations that may be holding a table, guests on site first"""
        holding = [
            ReservationStatus.ARRIVED.value,
            ReservationStatus.SEATED.value,
            ReservationStatus.CONFIRMED.value,
        ]
        result = await self.db.execute(
            select(Reservation)
            .where(Reservation.table_id == table_id, Reservation.status.in_(holding))
            .order_by(Reservation.date, Reservation.time)
        )
        candidates = list(result.scalars().all())
        return sorted(candidates, key=lambda r: holding.index(r.status))

    def validate_capacity(self, table: Table, guest_count: int) -> None:
        check_capacity(table, guest_count)

    async def insert(self, reservation: Reservation) -> Reservation:
        """Stage a new reservation and flush it so slot uniqueness is checked now"""
        self.db.add(reservation)
        await self._flush_or_conflict(table_id=reservation.table_id)
        return reservation

    async def flush(self) -> None:
        await self._flush_or_conflict()

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Slot uniqueness violation on commit", error=str(e.orig))
            raise Conflict()

    async def _flush_or_conflict(self, table_id: Optional[UUID] = None) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Slot uniqueness violation",
                table_id=str(table_id) if table_id else None,
                error=str(e.orig),
            )
            raise Conflict()
