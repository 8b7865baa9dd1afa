"""Reservation model"""

import uuid
from datetime import datetime
import enum
from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    Date,
    Time,
    DateTime,
    Numeric,
    ForeignKey,
    Text,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class ReservationStatus(str, enum.Enum):
    """Reservation lifecycle states"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class ReservationSource(str, enum.Enum):
    """How the reservation entered the system"""
    ONLINE = "online"
    WALK_IN = "walk_in"


TERMINAL_STATUSES = frozenset({
    ReservationStatus.COMPLETED,
    ReservationStatus.CANCELLED,
    ReservationStatus.NO_SHOW,
})

ACTIVE_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.ARRIVED,
    ReservationStatus.SEATED,
})

# Partial index predicate; keep in sync with ACTIVE_STATUSES
_ACTIVE_SLOT_PREDICATE = "status IN ('pending', 'confirmed', 'arrived', 'seated')"


class Reservation(Base):
    """Table reservations"""
    __tablename__ = "reservations"
    __table_args__ = (
        # One live booking per table slot; the pre-check in the resolver is only a fast path
        Index(
            "uq_reservations_active_slot",
            "table_id",
            "date",
            "time",
            unique=True,
            postgresql_where=text(_ACTIVE_SLOT_PREDICATE),
            sqlite_where=text(_ACTIVE_SLOT_PREDICATE),
        ),
        Index("ix_reservations_restaurant_date", "restaurant_id", "date"),
        CheckConstraint("guest_count >= 1", name="ck_reservations_guest_count_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), ForeignKey("restaurants.id"), nullable=False)
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))

    # Slot (restaurant-local wall clock)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    end_time = Column(Time)
    guest_count = Column(Integer, nullable=False)

    # Status
    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value)
    source = Column(String(20), nullable=False, default=ReservationSource.ONLINE.value)
    qr_code = Column(String(32), unique=True)

    # Guest-facing details
    occasion = Column(String(100))
    special_request = Column(Text)

    # Staff-only details
    cancellation_reason = Column(Text)
    internal_notes = Column(Text)

    # Deposit
    deposit_paid = Column(Boolean, default=False)
    deposit_amount = Column(Numeric(10, 2))
    deposit_paid_at = Column(DateTime)
    payment_intent_id = Column(String(255))

    # Transition timestamps
    confirmed_at = Column(DateTime)
    arrived_at = Column(DateTime)
    seated_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    reminder_sent = Column(DateTime)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    restaurant = relationship("Restaurant", back_populates="reservations")

    @property
    def current_status(self) -> ReservationStatus:
        return ReservationStatus(self.status)
