"""Restaurant-related models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class Restaurant(Base):
    """Restaurant accepting reservations"""
    __tablename__ = "restaurants"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    timezone = Column(String(50), default="America/New_York")
    owner_id = Column(UUID(as_uuid=True))  # users.id of the owning account
    is_active = Column(Boolean, default=True)

    # Closed dates: [{"date": "2024-12-25", "closed": true}, ...]
    holidays_json = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tables = relationship("Table", back_populates="restaurant")
    reservations = relationship("Reservation", back_populates="restaurant")
    waitlist_entries = relationship("WaitlistEntry", back_populates="restaurant")

    def is_closed_on(self, day) -> bool:
        """Check whether the restaurant is closed for a holiday on the given date"""
        day_str = day.isoformat()
        return any(
            h.get("date") == day_str and h.get("closed")
            for h in (self.holidays_json or [])
        )
