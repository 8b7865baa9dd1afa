"""Database models"""

from app.models.restaurant import Restaurant
from app.models.user import User, UserRole
from app.models.table import Table, TableStatus
from app.models.reservation import Reservation, ReservationStatus, ReservationSource
from app.models.waitlist import WaitlistEntry, WaitlistStatus
from app.models.notification import Notification, OperatorAlert
from app.models.audit import AuditLog
from app.models.feature_flag import FeatureFlag

__all__ = [
    "Restaurant",
    "User",
    "UserRole",
    "Table",
    "TableStatus",
    "Reservation",
    "ReservationStatus",
    "ReservationSource",
    "WaitlistEntry",
    "WaitlistStatus",
    "Notification",
    "OperatorAlert",
    "AuditLog",
    "FeatureFlag",
]
