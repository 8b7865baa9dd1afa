"""Dining table model"""

import uuid
from datetime import datetime
import enum
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class TableStatus(str, enum.Enum):
    """Coarse physical status stored on the table row"""
    AVAILABLE = "available"
    PENDING = "pending"
    RESERVED = "reserved"
    OCCUPIED = "occupied"
    BLOCKED = "blocked"
    DISABLED = "disabled"


OUT_OF_SERVICE_STATUSES = frozenset({TableStatus.BLOCKED.value, TableStatus.DISABLED.value})


class Table(Base):
    """Bookable table in a restaurant"""
    __tablename__ = "tables"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_tables_capacity_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True)

    number = Column(Integer, nullable=False)
    name = Column(String(100))
    capacity = Column(Integer, nullable=False)
    zone = Column(String(50), default="main")
    is_vip = Column(Boolean, default=False)

    is_active = Column(Boolean, default=True)
    status = Column(String(20), default=TableStatus.AVAILABLE.value)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    restaurant = relationship("Restaurant", back_populates="tables")
