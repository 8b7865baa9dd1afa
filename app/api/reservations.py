"""Reservation API endpoints"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.reservation import (
    ReservationCreate,
    ReservationReschedule,
    ReservationResponse,
    StaffReservationResponse,
    MyReservationsResponse,
    StatusUpdate,
    CancelRequest,
    DepositConfirmRequest,
    RepeatRequest,
    VerifyQRRequest,
    VerifyQRResponse,
)
from app.services.lifecycle import ReservationLifecycle
from app.api.auth import get_current_active_user
from app.api.deps import get_lifecycle

router = APIRouter()


@router.post("", response_model=ApiResponse[ReservationResponse], status_code=201)
async def create_reservation(
    reservation_data: ReservationCreate,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """Book a table"""
    reservation = await lifecycle.create(
        current_user,
        restaurant_id=reservation_data.restaurant_id,
        table_id=reservation_data.table_id,
        day=reservation_data.date,
        at=reservation_data.time,
        guest_count=reservation_data.guest_count,
        occasion=reservation_data.occasion,
        special_request=reservation_data.special_request,
        deposit_paid=reservation_data.deposit_paid,
        deposit_amount=reservation_data.deposit_amount,
        payment_intent_id=reservation_data.payment_intent_id,
    )
    return {"success": True, "data": reservation, "message": "Reservation created"}


@router.get("/my", response_model=ApiResponse[MyReservationsResponse])
async def my_reservations(
    status: Optional[str] = None,
    upcoming: bool = False,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """The caller's reservations with summary stats"""
    reservations, stats = await lifecycle.list_for_user(current_user.id, status=status, upcoming=upcoming)
    return {"success": True, "data": {"reservations": reservations, "stats": stats}}


@router.post("/verify-qr", response_model=ApiResponse[VerifyQRResponse])
async def verify_qr(
    request: VerifyQRRequest,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """Resolve a scanned QR code; optionally check the guest in"""
    reservation, auto_arrived = await lifecycle.verify_code(
        request.restaurant_id,
        request.qr_code,
        auto_arrive=request.auto_arrive,
        actor=current_user,
    )
    message = "Guest checked in" if auto_arrived else "Reservation found"
    return {
        "success": True,
        "data": {"reservation": reservation, "auto_arrived": auto_arrived},
        "message": message,
    }


@router.post("/repeat/{reservation_id}", response_model=ApiResponse[ReservationResponse], status_code=201)
async def repeat_reservation(
    reservation_id: UUID,
    request: RepeatRequest,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """Book a past reservation again at a new date and time"""
    reservation = await lifecycle.repeat(reservation_id, request.date, request.time, current_user)
    return {"success": True, "data": reservation, "message": "Reservation created"}


@router.get("/{reservation_id}", response_model=ApiResponse[ReservationResponse])
async def get_reservation(
    reservation_id: UUID,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """Reservation details (owner or restaurant staff)"""
    reservation = await lifecycle.get(reservation_id, current_user)
    return {"success": True, "data": reservation}


@router.patch("/{reservation_id}/status", response_model=ApiResponse[StaffReservationResponse])
async def update_status(
    reservation_id: UUID,
    request: StatusUpdate,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """Generic status change (staff)"""
    reservation = await lifecycle.set_status(
        reservation_id, request.status, actor=current_user, reason=request.reason
    )
    return {"success": True, "data": reservation, "message": f"Reservation {reservation.status}"}


@router.post("/{reservation_id}/cancel", response_model=ApiResponse[ReservationResponse])
async def cancel_reservation(
    reservation_id: UUID,
    request: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """Cancel a reservation; a paid deposit is refunded"""
    reason = request.reason if request else None
    reservation = await lifecycle.cancel(reservation_id, reason, current_user)
    return {"success": True, "data": reservation, "message": "Reservation cancelled"}


@router.post("/{reservation_id}/deposit/confirm", response_model=ApiResponse[ReservationResponse])
async def confirm_deposit(
    reservation_id: UUID,
    request: Optional[DepositConfirmRequest] = None,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """Record a paid deposit; a pending booking becomes confirmed"""
    intent = request.payment_intent_id if request else None
    reservation = await lifecycle.confirm_deposit(reservation_id, intent, actor=current_user)
    return {"success": True, "data": reservation, "message": "Deposit confirmed"}


@router.post("/{reservation_id}/arrive", response_model=ApiResponse[StaffReservationResponse])
async def arrive(
    reservation_id: UUID,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    reservation = await lifecycle.arrive(reservation_id, current_user)
    return {"success": True, "data": reservation, "message": "Guest arrived"}


@router.post("/{reservation_id}/seat", response_model=ApiResponse[StaffReservationResponse])
async def seat(
    reservation_id: UUID,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    reservation = await lifecycle.seat(reservation_id, current_user)
    return {"success": True, "data": reservation, "message": "Guests seated"}


@router.post("/{reservation_id}/complete", response_model=ApiResponse[StaffReservationResponse])
async def complete(
    reservation_id: UUID,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    reservation = await lifecycle.complete(reservation_id, current_user)
    return {"success": True, "data": reservation, "message": "Reservation completed"}


@router.post("/{reservation_id}/no-show", response_model=ApiResponse[StaffReservationResponse])
async def no_show(
    reservation_id: UUID,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    reservation = await lifecycle.no_show(reservation_id, current_user)
    return {"success": True, "data": reservation, "message": "Reservation marked as no-show"}


@router.patch("/{reservation_id}", response_model=ApiResponse[ReservationResponse])
async def reschedule(
    reservation_id: UUID,
    request: ReservationReschedule,
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """Change date, time or party size"""
    reservation = await lifecycle.reschedule(
        reservation_id,
        actor=current_user,
        day=request.date,
        at=request.time,
        guest_count=request.guest_count,
    )
    return {"success": True, "data": reservation, "message": "Reservation updated"}
