"""Pydantic schemas for request/response validation"""

from app.schemas.common import ApiResponse, ErrorResponse
from app.schemas.auth import (
    Token,
    RefreshRequest,
    UserResponse,
)
from app.schemas.table import (
    TableCreate,
    TableUpdate,
    TableResponse,
    TableStatusResponse,
    WalkInRequest,
)
from app.schemas.reservation import (
    ReservationCreate,
    ReservationReschedule,
    ReservationResponse,
    StaffReservationResponse,
    ReservationListResponse,
    MyReservationsResponse,
    StatusUpdate,
    CancelRequest,
    DepositConfirmRequest,
    RepeatRequest,
    VerifyQRRequest,
    VerifyQRResponse,
    AvailabilityResponse,
    AvailabilitySlot,
)
from app.schemas.waitlist import (
    WaitlistJoin,
    WaitlistStatusUpdate,
    WaitlistEntryResponse,
    WaitlistPositionResponse,
    WaitlistSummary,
)

__all__ = [
    "ApiResponse",
    "ErrorResponse",
    "Token",
    "RefreshRequest",
    "UserResponse",
    "TableCreate",
    "TableUpdate",
    "TableResponse",
    "TableStatusResponse",
    "WalkInRequest",
    "ReservationCreate",
    "ReservationReschedule",
    "ReservationResponse",
    "StaffReservationResponse",
    "ReservationListResponse",
    "MyReservationsResponse",
    "StatusUpdate",
    "CancelRequest",
    "DepositConfirmRequest",
    "RepeatRequest",
    "VerifyQRRequest",
    "VerifyQRResponse",
    "AvailabilityResponse",
    "AvailabilitySlot",
    "WaitlistJoin",
    "WaitlistStatusUpdate",
    "WaitlistEntryResponse",
    "WaitlistPositionResponse",
    "WaitlistSummary",
]
