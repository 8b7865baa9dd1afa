"""Table schemas"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class TableCreate(BaseModel):
    """Create table request"""
    number: int
    capacity: int
    zone: Optional[str] = None
    name: Optional[str] = None
    is_vip: bool = Field(False, alias="isVip")

    class Config:
        populate_by_name = True


class TableUpdate(BaseModel):
    """Staff edits; only the fields sent are applied"""
    number: Optional[int] = None
    name: Optional[str] = None
    capacity: Optional[int] = None
    zone: Optional[str] = None
    is_vip: Optional[bool] = Field(None, alias="isVip")
    is_active: Optional[bool] = Field(None, alias="isActive")
    status: Optional[str] = None

    class Config:
        populate_by_name = True


class TableResponse(BaseModel):
    """Table response"""
    id: UUID
    restaurant_id: UUID
    number: int
    name: Optional[str]
    capacity: int
    zone: Optional[str]
    is_vip: bool
    is_active: bool
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TableStatusResponse(BaseModel):
    """Derived occupancy for one table"""
    table_id: UUID
    number: int
    logical_status: str
    physical_status: str
    current_reservation: Optional[Dict[str, Any]] = None
    next_reservation: Optional[Dict[str, Any]] = None
    remaining_minutes: Optional[int] = None


class WalkInRequest(BaseModel):
    """Seat a party without a booking"""
    party_size: int = Field(alias="partySize")
    name: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        populate_by_name = True
