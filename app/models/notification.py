"""Notification and operator queue models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Text
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class Notification(Base):
    """In-app notification for a user"""
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    type = Column(String(50), nullable=False)  # reservation_confirmed, review_request, waitlist_ready, ...
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data_json = Column(JSON, default=dict)

    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class OperatorAlert(Base):
    """Work item for restaurant operators (failed refunds, etc.)"""
    __tablename__ = "operator_alerts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), ForeignKey("restaurants.id"))

    kind = Column(String(50), nullable=False)  # refund_failed
    resource_type = Column(String(50))
    resource_id = Column(UUID(as_uuid=True))
    detail_json = Column(JSON, default=dict)

    resolved = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
