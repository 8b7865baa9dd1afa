"""Walk-in waitlist model"""

import uuid
from datetime import datetime
import enum
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class WaitlistStatus(str, enum.Enum):
    """Waitlist entry states"""
    WAITING = "waiting"
    NOTIFIED = "notified"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Entries that still hold a place in the queue
QUEUED_STATUSES = (WaitlistStatus.WAITING.value, WaitlistStatus.NOTIFIED.value)

# Entries that block the same phone from joining again
OPEN_STATUSES = QUEUED_STATUSES + (WaitlistStatus.CONFIRMED.value,)


class WaitlistEntry(Base):
    """Party waiting for a table"""
    __tablename__ = "waitlist"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))

    # Guest
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    email = Column(String(255))
    party_size = Column(Integer, nullable=False)
    preferred_zone = Column(String(50))
    notes = Column(Text)

    # Queue
    status = Column(String(20), nullable=False, default=WaitlistStatus.WAITING.value)
    position = Column(Integer)
    estimated_wait = Column(Integer)
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"))

    notified_at = Column(DateTime)
    seated_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    restaurant = relationship("Restaurant", back_populates="waitlist_entries")
