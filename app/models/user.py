"""User model for authentication"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.dialects.postgresql import UUID
import enum

from app.database import Base


class UserRole(str, enum.Enum):
    """User roles for RBAC"""
    SUPER_ADMIN = "super_admin"
    RESTAURANT_ADMIN = "restaurant_admin"
    STAFF = "staff"
    CUSTOMER = "customer"


class User(Base):
    """Customers, restaurant staff and platform admins"""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Restaurant context for staff and restaurant admins
    restaurant_id = Column(UUID(as_uuid=True), ForeignKey("restaurants.id"))

    # Authentication
    email = Column(String(255), unique=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    # Profile
    full_name = Column(String(255))
    phone = Column(String(20))

    # Role
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER)

    # Status
    is_active = Column(Boolean, default=True)

    # Tokens
    refresh_token = Column(String(500))

    # Timestamps
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def has_permission(self, required_role: UserRole) -> bool:
        """Check if user has at least the required role level"""
        role_hierarchy = {
            UserRole.CUSTOMER: 1,
            UserRole.STAFF: 2,
            UserRole.RESTAURANT_ADMIN: 3,
            UserRole.SUPER_ADMIN: 4,
        }
        return role_hierarchy.get(self.role, 0) >= role_hierarchy.get(required_role, 0)

    def is_staff_of(self, restaurant_id) -> bool:
        """Check if user works for (or administers) the given restaurant"""
        if self.role == UserRole.SUPER_ADMIN:
            return True
        return (
            self.role in (UserRole.RESTAURANT_ADMIN, UserRole.STAFF)
            and self.restaurant_id is not None
            and self.restaurant_id == restaurant_id
        )
