"""Waitlist API endpoints (guests may act without an account, by phone)"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.waitlist import (
    WaitlistJoin,
    WaitlistStatusUpdate,
    WaitlistEntryResponse,
    WaitlistPositionResponse,
    WaitlistSummary,
)
from app.services.waitlist import WaitlistManager
from app.api.auth import get_current_active_user, get_optional_user, require_restaurant_context
from app.api.deps import get_waitlist

router = APIRouter()


@router.post("/join", response_model=ApiResponse[WaitlistEntryResponse], status_code=201)
async def join_waitlist(
    request: WaitlistJoin,
    current_user: Optional[User] = Depends(get_optional_user),
    waitlist: WaitlistManager = Depends(get_waitlist),
):
    entry = await waitlist.join(
        request.restaurant_id,
        name=request.name,
        phone=request.phone,
        party_size=request.party_size,
        email=request.email,
        preferred_zone=request.preferred_zone,
        notes=request.notes,
        user_id=current_user.id if current_user else None,
    )
    return {
        "success": True,
        "data": entry,
        "message": f"Added to waitlist at position {entry.position}",
    }


@router.get("/my", response_model=ApiResponse[List[WaitlistEntryResponse]])
async def my_entries(
    phone: Optional[str] = None,
    current_user: Optional[User] = Depends(get_optional_user),
    waitlist: WaitlistManager = Depends(get_waitlist),
):
    """Open entries of the caller, or of ``?phone=`` for guests"""
    entries = await waitlist.my_entries(
        user_id=current_user.id if current_user else None,
        phone=phone,
    )
    return {"success": True, "data": entries}


@router.get("/admin/list", response_model=ApiResponse[List[WaitlistEntryResponse]])
async def admin_list(
    restaurant_id: UUID = Depends(require_restaurant_context),
    current_user: User = Depends(get_current_active_user),
    waitlist: WaitlistManager = Depends(get_waitlist),
):
    entries = await waitlist.list_active(restaurant_id, actor=current_user)
    return {"success": True, "data": entries}


@router.get("/admin/summary", response_model=ApiResponse[WaitlistSummary])
async def admin_summary(
    restaurant_id: UUID = Depends(require_restaurant_context),
    current_user: User = Depends(get_current_active_user),
    waitlist: WaitlistManager = Depends(get_waitlist),
):
    summary = await waitlist.summary(restaurant_id, actor=current_user)
    return {"success": True, "data": summary}


@router.patch("/admin/{entry_id}/status", response_model=ApiResponse[WaitlistEntryResponse])
async def admin_update_status(
    entry_id: UUID,
    request: WaitlistStatusUpdate,
    current_user: User = Depends(get_current_active_user),
    waitlist: WaitlistManager = Depends(get_waitlist),
):
    entry = await waitlist.update_status(
        entry_id, request.status, actor=current_user, table_id=request.table_id
    )
    return {"success": True, "data": entry, "message": f"Waitlist entry {entry.status}"}


@router.get("/{entry_id}/status", response_model=ApiResponse[WaitlistPositionResponse])
async def entry_status(
    entry_id: UUID,
    waitlist: WaitlistManager = Depends(get_waitlist),
):
    """Entry with its live position and wait estimate"""
    position = await waitlist.status(entry_id)
    data = WaitlistEntryResponse.model_validate(position.entry).model_dump()
    data["current_position"] = position.current_position
    data["estimated_wait"] = position.estimated_wait
    return {"success": True, "data": data}


@router.delete("/{entry_id}", response_model=ApiResponse[WaitlistEntryResponse])
async def leave_waitlist(
    entry_id: UUID,
    phone: Optional[str] = None,
    current_user: Optional[User] = Depends(get_optional_user),
    waitlist: WaitlistManager = Depends(get_waitlist),
):
    entry = await waitlist.leave(
        entry_id,
        user_id=current_user.id if current_user else None,
        phone=phone,
    )
    return {"success": True, "data": entry, "message": "Removed from waitlist"}
