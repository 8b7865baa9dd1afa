"""Feature flag model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class FeatureFlag(Base):
    """Runtime switch, global (restaurant_id is null) or per restaurant"""
    __tablename__ = "feature_flags"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "key", name="uq_feature_flags_restaurant_key"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), ForeignKey("restaurants.id"))
    key = Column(String(100), nullable=False)
    is_enabled = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
