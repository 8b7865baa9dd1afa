"""Reservation schemas"""

import datetime as dt
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field


class ReservationCreate(BaseModel):
    """Create reservation request"""
    restaurant_id: UUID = Field(alias="restaurantId")
    table_id: UUID = Field(alias="tableId")
    date: dt.date
    time: dt.time
    guest_count: int = Field(alias="guestCount")
    occasion: Optional[str] = None
    special_request: Optional[str] = Field(None, alias="specialRequest")
    deposit_paid: bool = Field(False, alias="depositPaid")
    deposit_amount: Optional[Decimal] = Field(None, alias="depositAmount")
    payment_intent_id: Optional[str] = Field(None, alias="paymentIntentId")

    class Config:
        populate_by_name = True


class ReservationReschedule(BaseModel):
    """Move a reservation; at least one field"""
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    guest_count: Optional[int] = Field(None, alias="guestCount")

    class Config:
        populate_by_name = True


class StatusUpdate(BaseModel):
    """Generic status change"""
    status: str
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class DepositConfirmRequest(BaseModel):
    """Payment intent the guest paid; defaults to the one opened at booking"""
    payment_intent_id: Optional[str] = Field(None, alias="paymentIntentId")

    class Config:
        populate_by_name = True


class RepeatRequest(BaseModel):
    """Book a past reservation again"""
    date: dt.date
    time: dt.time


class VerifyQRRequest(BaseModel):
    """Staff scan of a guest's QR code"""
    qr_code: str = Field(alias="qrCode")
    restaurant_id: UUID = Field(alias="restaurantId")
    auto_arrive: bool = Field(False, alias="autoArrive")

    class Config:
        populate_by_name = True


class ReservationResponse(BaseModel):
    """Reservation response"""
    id: UUID
    restaurant_id: UUID
    table_id: UUID
    user_id: Optional[UUID]
    date: dt.date
    time: dt.time
    end_time: Optional[dt.time]
    guest_count: int
    status: str
    source: str
    qr_code: Optional[str]
    occasion: Optional[str]
    special_request: Optional[str]
    cancellation_reason: Optional[str]
    deposit_paid: Optional[bool]
    deposit_amount: Optional[Decimal]
    confirmed_at: Optional[dt.datetime]
    arrived_at: Optional[dt.datetime]
    seated_at: Optional[dt.datetime]
    completed_at: Optional[dt.datetime]
    cancelled_at: Optional[dt.datetime]
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class StaffReservationResponse(ReservationResponse):
    """Reservation as seen by restaurant staff"""
    internal_notes: Optional[str]
    payment_intent_id: Optional[str]


class ReservationStats(BaseModel):
    total: int
    completed: int
    cancelled: int
    no_show: int
    upcoming: int


class MyReservationsResponse(BaseModel):
    """A guest's reservations with summary counts"""
    reservations: List[ReservationResponse]
    stats: ReservationStats


class ReservationListResponse(BaseModel):
    """Paginated reservation list"""
    items: List[StaffReservationResponse]
    total: int
    limit: int
    offset: int


class VerifyQRResponse(BaseModel):
    reservation: StaffReservationResponse
    auto_arrived: bool


class AvailabilitySlot(BaseModel):
    """Candidate time slot"""
    time: str
    available: bool


class AvailabilityResponse(BaseModel):
    """Open slots for a date and party size"""
    date: dt.date
    party_size: int
    slots: List[AvailabilitySlot] = []
