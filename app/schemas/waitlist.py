"""Waitlist schemas"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


class WaitlistJoin(BaseModel):
    """Join the waitlist"""
    restaurant_id: UUID = Field(alias="restaurantId")
    name: str
    phone: str
    party_size: int = Field(alias="partySize")
    email: Optional[str] = None
    preferred_zone: Optional[str] = Field(None, alias="preferredZone")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True


class WaitlistStatusUpdate(BaseModel):
    """Staff status change"""
    status: str
    table_id: Optional[UUID] = Field(None, alias="tableId")

    class Config:
        populate_by_name = True


class WaitlistEntryResponse(BaseModel):
    """Waitlist entry"""
    id: UUID
    restaurant_id: UUID
    user_id: Optional[UUID]
    name: str
    phone: str
    email: Optional[str]
    party_size: int
    preferred_zone: Optional[str]
    notes: Optional[str]
    status: str
    position: Optional[int]
    estimated_wait: Optional[int]
    table_id: Optional[UUID]
    notified_at: Optional[datetime]
    seated_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class WaitlistPositionResponse(WaitlistEntryResponse):
    """Entry with its live queue position"""
    current_position: Optional[int] = None


class WaitlistSummary(BaseModel):
    waiting: int
    notified: int
    seated: int
    total: int
