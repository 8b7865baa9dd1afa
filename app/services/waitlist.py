"""Walk-in waitlist queue.

Positions are handed out once at join time (count of queued entries + 1) and
never rewritten; the live position is recomputed from the entries still
queued ahead. Two parties joining at the same instant may share a position,
which only affects the displayed estimate.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.models.table import TableStatus
from app.models.user import User
from app.models.waitlist import WaitlistEntry, WaitlistStatus, QUEUED_STATUSES, OPEN_STATUSES
from app.services.errors import Duplicate, Forbidden, InvalidState, NotFound, ValidationError
from app.services.events import DomainEvent, EventPublisher, EventType, publish_all
from app.services.table_status import TableStatusEngine
from app.services.tables import TableRegistry

logger = structlog.get_logger()

W = WaitlistStatus

# Moves staff may make from each state; notified -> notified re-sends the call
WAITLIST_TRANSITIONS = {
    W.WAITING: frozenset({W.NOTIFIED, W.CONFIRMED, W.SEATED, W.CANCELLED, W.NO_SHOW}),
    W.NOTIFIED: frozenset({W.NOTIFIED, W.CONFIRMED, W.SEATED, W.CANCELLED, W.NO_SHOW}),
    W.CONFIRMED: frozenset({W.SEATED, W.CANCELLED, W.NO_SHOW}),
    W.SEATED: frozenset(),
    W.CANCELLED: frozenset(),
    W.NO_SHOW: frozenset(),
}

# Statuses staff can move an entry to
STAFF_TARGETS = frozenset().union(*WAITLIST_TRANSITIONS.values())


@dataclass
class QueuePosition:
    entry: WaitlistEntry
    current_position: Optional[int]
    estimated_wait: Optional[int]


class WaitlistManager:
    """Waitlist operations for one database session"""

    def __init__(
        self,
        db: AsyncSession,
        registry: TableRegistry,
        publisher: Optional[EventPublisher] = None,
        status_engine: Optional[TableStatusEngine] = None,
        minutes_per_position: Optional[int] = None,
    ):
        self.db = db
        self.registry = registry
        self.publisher = publisher
        self.status_engine = status_engine
        self.minutes_per_position = minutes_per_position or settings.waitlist_minutes_per_position

    async def get(self, entry_id: UUID) -> WaitlistEntry:
        result = await self.db.execute(select(WaitlistEntry).where(WaitlistEntry.id == entry_id))
        entry = result.scalar_one_or_none()
        if not entry:
            raise NotFound("Waitlist entry not found")
        return entry

    async def join(
        self,
        restaurant_id: UUID,
        name: str,
        phone: str,
        party_size: int,
        email: Optional[str] = None,
        preferred_zone: Optional[str] = None,
        notes: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> WaitlistEntry:
        """Queue a party at the back of the line"""
        if not restaurant_id or not name or not phone or not party_size:
            raise ValidationError("restaurantId, name, phone, and partySize are required")
        if party_size < 1:
            raise ValidationError("Party size must be at least 1")

        await self.registry.get_restaurant(restaurant_id)

        existing = await self.db.execute(
            select(WaitlistEntry.id).where(
                WaitlistEntry.restaurant_id == restaurant_id,
                WaitlistEntry.phone == phone,
                WaitlistEntry.status.in_(OPEN_STATUSES),
            ).limit(1)
        )
        if existing.scalar_one_or_none() is not None:
            raise Duplicate()

        queued = await self._count_queued(restaurant_id)
        position = queued + 1

        entry = WaitlistEntry(
            restaurant_id=restaurant_id,
            user_id=user_id,
            name=name,
            phone=phone,
            email=email,
            party_size=party_size,
            preferred_zone=preferred_zone,
            notes=notes,
            status=WaitlistStatus.WAITING.value,
            position=position,
            estimated_wait=position * self.minutes_per_position,
        )
        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)

        logger.info(
            "Joined waitlist",
            entry_id=str(entry.id),
            restaurant_id=str(restaurant_id),
            position=position,
        )
        return entry

    async def status(self, entry_id: UUID) -> QueuePosition:
        """Live position: queued entries with a lower join position, plus one"""
        entry = await self.get(entry_id)

        if entry.status not in QUEUED_STATUSES or entry.position is None:
            return QueuePosition(entry=entry, current_position=None, estimated_wait=None)

        ahead = await self._count_queued(entry.restaurant_id, before_position=entry.position)
        current = ahead + 1
        return QueuePosition(
            entry=entry,
            current_position=current,
            estimated_wait=current * self.minutes_per_position,
        )

    async def update_status(
        self,
        entry_id: UUID,
        new_status: str,
        actor: Optional[User] = None,
        table_id: Optional[UUID] = None,
    ) -> WaitlistEntry:
        """Staff moves an entry along (notify, seat, drop)"""
        try:
            target = WaitlistStatus(new_status)
        except ValueError:
            raise ValidationError("Invalid status for admin update")
        if target not in STAFF_TARGETS:
            raise ValidationError("Invalid status for admin update")

        entry = await self.get(entry_id)
        await self.registry.ensure_staff(entry.restaurant_id, actor)

        current = WaitlistStatus(entry.status)
        if target not in WAITLIST_TRANSITIONS[current]:
            raise InvalidState(f"Cannot move a {current.value} waitlist entry to {target.value}")

        table = None
        if target == WaitlistStatus.SEATED and table_id is not None:
            table = await self.registry.get(table_id, entry.restaurant_id)

        now = datetime.utcnow()
        entry.status = target.value
        if target == WaitlistStatus.NOTIFIED:
            entry.notified_at = now
        elif target == WaitlistStatus.SEATED:
            entry.seated_at = now
            entry.position = None
            if table is not None:
                entry.table_id = table.id
                self.registry.set_status(table, TableStatus.OCCUPIED)

        await self.db.commit()
        await self.db.refresh(entry)

        logger.info(
            "Waitlist entry updated",
            entry_id=str(entry.id),
            status=entry.status,
            table_id=str(table.id) if table else None,
        )

        if table is not None and self.status_engine is not None:
            self.status_engine.invalidate(entry.restaurant_id)

        if target == WaitlistStatus.NOTIFIED:
            await publish_all(
                self.publisher,
                DomainEvent(
                    type=EventType.WAITLIST_NOTIFIED,
                    restaurant_id=entry.restaurant_id,
                    resource_id=entry.id,
                    user_id=entry.user_id,
                    payload={"name": entry.name, "phone": entry.phone, "party_size": entry.party_size},
                ),
            )
        return entry

    async def leave(
        self,
        entry_id: UUID,
        user_id: Optional[UUID] = None,
        phone: Optional[str] = None,
    ) -> WaitlistEntry:
        """Guest leaves the queue; the entry is cancelled, not deleted"""
        entry = await self.get(entry_id)

        if user_id is not None:
            if entry.user_id != user_id and entry.phone != phone:
                raise Forbidden("Not authorized to remove this entry")
        elif phone:
            if entry.phone != phone:
                raise Forbidden("Phone number does not match")
        else:
            raise ValidationError("Authentication or phone required")

        if entry.status not in OPEN_STATUSES:
            raise NotFound("Waitlist entry is no longer active")

        entry.status = WaitlistStatus.CANCELLED.value
        await self.db.commit()
        await self.db.refresh(entry)

        logger.info("Left waitlist", entry_id=str(entry.id), restaurant_id=str(entry.restaurant_id))
        return entry

    async def list_active(self, restaurant_id: UUID, actor: Optional[User] = None) -> List[WaitlistEntry]:
        await self.registry.ensure_staff(restaurant_id, actor)
        result = await self.db.execute(
            select(WaitlistEntry)
            .where(
                WaitlistEntry.restaurant_id == restaurant_id,
                WaitlistEntry.status.in_(OPEN_STATUSES),
            )
            .order_by(WaitlistEntry.position.asc(), WaitlistEntry.created_at.asc())
        )
        return list(result.scalars().all())

    async def my_entries(
        self,
        user_id: Optional[UUID] = None,
        phone: Optional[str] = None,
    ) -> List[WaitlistEntry]:
        if user_id is None and not phone:
            raise ValidationError("Phone number required for non-authenticated users")

        query = select(WaitlistEntry).where(WaitlistEntry.status.in_(OPEN_STATUSES))
        if user_id is not None:
            query = query.where(WaitlistEntry.user_id == user_id)
        else:
            query = query.where(WaitlistEntry.phone == phone)

        result = await self.db.execute(query.order_by(WaitlistEntry.created_at.desc()))
        return list(result.scalars().all())

    async def summary(
        self,
        restaurant_id: UUID,
        today: Optional[date] = None,
        actor: Optional[User] = None,
    ) -> Dict[str, Any]:
        """Counts for entries created today"""
        await self.registry.ensure_staff(restaurant_id, actor)
        today = today or datetime.utcnow().date()
        start = datetime.combine(today, time.min)

        result = await self.db.execute(
            select(WaitlistEntry.status, func.count(WaitlistEntry.id))
            .where(
                WaitlistEntry.restaurant_id == restaurant_id,
                WaitlistEntry.created_at >= start,
                WaitlistEntry.created_at < start + timedelta(days=1),
            )
            .group_by(WaitlistEntry.status)
        )
        counts = {status: count for status, count in result.all()}

        return {
            "waiting": counts.get(WaitlistStatus.WAITING.value, 0),
            "notified": counts.get(WaitlistStatus.NOTIFIED.value, 0),
            "seated": counts.get(WaitlistStatus.SEATED.value, 0),
            "total": sum(counts.values()),
        }

    async def _count_queued(self, restaurant_id: UUID, before_position: Optional[int] = None) -> int:
        query = select(func.count(WaitlistEntry.id)).where(
            WaitlistEntry.restaurant_id == restaurant_id,
            WaitlistEntry.status.in_(QUEUED_STATUSES),
        )
        if before_position is not None:
            query = query.where(WaitlistEntry.position < before_position)
        result = await self.db.execute(query)
        return result.scalar() or 0
