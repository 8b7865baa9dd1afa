"""Audit trail helpers"""

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog
from app.models.reservation import Reservation
from app.models.user import User


def reservation_snapshot(reservation: Reservation) -> Dict[str, Any]:
    """Fields worth diffing in the audit log"""
    return {
        "status": reservation.status,
        "date": reservation.date.isoformat() if reservation.date else None,
        "time": reservation.time.isoformat() if reservation.time else None,
        "guest_count": reservation.guest_count,
        "table_id": str(reservation.table_id) if reservation.table_id else None,
    }


def record_audit(
    db: AsyncSession,
    action: str,
    resource_type: str,
    resource_id: UUID,
    restaurant_id: Optional[UUID] = None,
    actor: Optional[User] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction"""
    entry = AuditLog(
        restaurant_id=restaurant_id,
        actor_id=actor.id if actor else None,
        actor_type="user" if actor else "system",
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        data_json={"before": before, "after": after},
    )
    db.add(entry)
    return entry
