"""Table registry: table records and their physical status"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.models.restaurant import Restaurant
from app.models.reservation import Reservation, ACTIVE_STATUSES
from app.models.table import Table, TableStatus
from app.models.user import User
from app.services.errors import Conflict, Forbidden, NotFound, ValidationError

logger = structlog.get_logger()

# Columns staff may change through the admin surface
EDITABLE_FIELDS = ("number", "name", "capacity", "zone", "is_vip", "is_active", "status")


class TableRegistry:
    """Reads and writes table rows for one database session"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_restaurant(self, restaurant_id: UUID) -> Restaurant:
        result = await self.db.execute(select(Restaurant).where(Restaurant.id == restaurant_id))
        restaurant = result.scalar_one_or_none()
        if not restaurant:
            raise NotFound("Restaurant not found")
        return restaurant

    async def ensure_staff(self, restaurant_id: UUID, actor: Optional[User]) -> None:
        """Raise Forbidden unless the actor runs this restaurant. ``None`` is the system."""
        if actor is None or actor.is_staff_of(restaurant_id):
            return
        restaurant = await self.get_restaurant(restaurant_id)
        if restaurant.owner_id is not None and restaurant.owner_id == actor.id:
            return
        raise Forbidden("You do not have permission to manage this restaurant")

    async def get(self, table_id: UUID, restaurant_id: Optional[UUID] = None) -> Table:
        query = select(Table).where(Table.id == table_id)
        if restaurant_id is not None:
            query = query.where(Table.restaurant_id == restaurant_id)
        result = await self.db.execute(query)
        table = result.scalar_one_or_none()
        if not table:
            raise NotFound("Table not found")
        return table

    async def list_for_restaurant(
        self,
        restaurant_id: UUID,
        active_only: bool = False,
        min_capacity: Optional[int] = None,
    ) -> List[Table]:
        query = select(Table).where(Table.restaurant_id == restaurant_id)
        if active_only:
            query = query.where(Table.is_active == True)  # noqa: E712
        if min_capacity is not None:
            query = query.where(Table.capacity >= min_capacity)
        result = await self.db.execute(query.order_by(Table.number))
        return list(result.scalars().all())

    async def create(
        self,
        restaurant_id: UUID,
        number: int,
        capacity: int,
        zone: Optional[str] = None,
        name: Optional[str] = None,
        is_vip: bool = False,
    ) -> Table:
        """Create an active, available table"""
        await self.get_restaurant(restaurant_id)
        if capacity is None or capacity < 1:
            raise ValidationError("Table capacity must be at least 1")

        table = Table(
            restaurant_id=restaurant_id,
            number=number,
            name=name,
            capacity=capacity,
            zone=zone or "main",
            is_vip=bool(is_vip),
            is_active=True,
            status=TableStatus.AVAILABLE.value,
        )
        self.db.add(table)
        await self.db.commit()
        await self.db.refresh(table)

        logger.info("Table created", table_id=str(table.id), restaurant_id=str(restaurant_id))
        return table

    def validate_changes(self, changes: dict) -> dict:
        """Check every staff edit up front; unknown keys are dropped"""
        staged = {}
        for field, value in changes.items():
            if field not in EDITABLE_FIELDS:
                continue
            if field == "capacity" and (value is None or value < 1):
                raise ValidationError("Table capacity must be at least 1")
            if field == "status":
                try:
                    value = TableStatus(value).value
                except ValueError:
                    raise ValidationError(f"Invalid table status: {value}")
            staged[field] = value
        return staged

    def apply_changes(self, table: Table, staged: dict) -> None:
        """Stage validated edits; the caller commits"""
        for field, value in staged.items():
            setattr(table, field, value)

    async def update(self, table_id: UUID, restaurant_id: UUID, changes: dict) -> Table:
        """Apply staff edits in one commit"""
        table = await self.get(table_id, restaurant_id)
        self.apply_changes(table, self.validate_changes(changes))

        await self.db.commit()
        await self.db.refresh(table)
        return table

    def set_status(self, table: Table, status: TableStatus) -> None:
        """Stage a physical status change; the caller commits"""
        if table.status != status.value:
            logger.debug(
                "Table status change",
                table_id=str(table.id),
                old_status=table.status,
                new_status=status.value,
            )
        table.status = status.value

    async def count_active_reservations(self, table_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Reservation.id)).where(
                Reservation.table_id == table_id,
                Reservation.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
        )
        return result.scalar() or 0

    async def delete(self, table_id: UUID, restaurant_id: UUID) -> None:
        """Delete a table that has no live reservations"""
        table = await self.get(table_id, restaurant_id)

        if await self.count_active_reservations(table_id):
            raise Conflict("Table has active reservations and cannot be deleted")

        await self.db.delete(table)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Table has reservation history; deactivate it instead")

        logger.info("Table deleted", table_id=str(table_id), restaurant_id=str(restaurant_id))


def check_capacity(table: Table, guest_count: int) -> None:
    """Reject parties that do not fit the table"""
    if guest_count is None or guest_count < 1:
        raise ValidationError("Guest count must be at least 1")
    if guest_count > table.capacity:
        raise ValidationError(
            f"The current table only has a capacity of {table.capacity} guests"
        )
