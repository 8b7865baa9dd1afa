"""Restaurant admin endpoints: floor (mesas) and reservation book (reservas).

The restaurant comes from the staff member's token; super admins pass
``?restaurantId=``.
"""

from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.models.table import TableStatus
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.reservation import ReservationListResponse, StaffReservationResponse
from app.schemas.table import (
    TableCreate,
    TableUpdate,
    TableResponse,
    TableStatusResponse,
    WalkInRequest,
)
from app.services.clock import Clock, SystemClock, parse_date
from app.services.lifecycle import ReservationLifecycle
from app.services.table_status import TableStatusEngine
from app.services.tables import TableRegistry
from app.api.auth import get_current_active_user, require_restaurant_context
from app.api.deps import get_clock, get_lifecycle, get_registry, get_status_engine

router = APIRouter()


@router.get("/mesas", response_model=ApiResponse[List[TableResponse]])
async def list_tables(
    restaurant_id: UUID = Depends(require_restaurant_context),
    registry: TableRegistry = Depends(get_registry),
):
    """All tables, including inactive ones"""
    tables = await registry.list_for_restaurant(restaurant_id)
    return {"success": True, "data": tables}


@router.get("/mesas/estado", response_model=ApiResponse[List[TableStatusResponse]])
async def table_status(
    restaurant_id: UUID = Depends(require_restaurant_context),
    engine: TableStatusEngine = Depends(get_status_engine),
):
    """Live occupancy of every active table"""
    reports = await engine.report(restaurant_id)
    return {"success": True, "data": [report.to_dict() for report in reports]}


@router.post("/mesas", response_model=ApiResponse[TableResponse], status_code=201)
async def create_table(
    table_data: TableCreate,
    restaurant_id: UUID = Depends(require_restaurant_context),
    registry: TableRegistry = Depends(get_registry),
    engine: TableStatusEngine = Depends(get_status_engine),
):
    table = await registry.create(
        restaurant_id,
        number=table_data.number,
        capacity=table_data.capacity,
        zone=table_data.zone,
        name=table_data.name,
        is_vip=table_data.is_vip,
    )
    engine.invalidate(restaurant_id)
    return {"success": True, "data": table, "message": "Table created"}


@router.patch("/mesas/{table_id}", response_model=ApiResponse[TableResponse])
async def update_table(
    table_id: UUID,
    table_data: TableUpdate,
    restaurant_id: UUID = Depends(require_restaurant_context),
    current_user: User = Depends(get_current_active_user),
    registry: TableRegistry = Depends(get_registry),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    engine: TableStatusEngine = Depends(get_status_engine),
):
    """Edit a table. Setting it ``available`` completes whoever was holding it."""
    changes = table_data.model_dump(exclude_unset=True)

    if changes.get("status") == TableStatus.AVAILABLE.value:
        table, _ = await lifecycle.release_table(restaurant_id, table_id, actor=current_user, changes=changes)
    else:
        table = await registry.update(table_id, restaurant_id, changes)
    engine.invalidate(restaurant_id)
    return {"success": True, "data": table, "message": "Table updated"}


@router.delete("/mesas/{table_id}", response_model=ApiResponse[None])
async def delete_table(
    table_id: UUID,
    restaurant_id: UUID = Depends(require_restaurant_context),
    registry: TableRegistry = Depends(get_registry),
    engine: TableStatusEngine = Depends(get_status_engine),
):
    await registry.delete(table_id, restaurant_id)
    engine.invalidate(restaurant_id)
    return {"success": True, "message": "Table deleted"}


@router.post("/mesas/{table_id}/walk-in", response_model=ApiResponse[StaffReservationResponse], status_code=201)
async def walk_in(
    table_id: UUID,
    request: WalkInRequest,
    restaurant_id: UUID = Depends(require_restaurant_context),
    current_user: User = Depends(get_current_active_user),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
):
    """Seat a party that arrived without a booking"""
    reservation = await lifecycle.assign_walk_in(
        restaurant_id,
        table_id,
        request.party_size,
        actor=current_user,
        name=request.name,
        phone=request.phone,
    )
    return {"success": True, "data": reservation, "message": "Walk-in seated"}


@router.get("/reservas", response_model=ApiResponse[ReservationListResponse])
async def list_reservations(
    fecha: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    restaurant_id: UUID = Depends(require_restaurant_context),
    current_user: User = Depends(get_current_active_user),
    registry: TableRegistry = Depends(get_registry),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    clock: Optional[Clock] = Depends(get_clock),
):
    """Reservation book; ``fecha`` is ``hoy``, ``manana`` or ``YYYY-MM-DD``"""
    day = None
    if fecha in ("hoy", "manana"):
        restaurant = await registry.get_restaurant(restaurant_id)
        today = (clock or SystemClock(restaurant.timezone)).today()
        day = today if fecha == "hoy" else today + timedelta(days=1)
    elif fecha:
        day = parse_date(fecha)

    items, total = await lifecycle.list_for_restaurant(
        restaurant_id, day=day, status=status, limit=limit, offset=offset, actor=current_user
    )
    return {
        "success": True,
        "data": {"items": items, "total": total, "limit": limit, "offset": offset},
    }
