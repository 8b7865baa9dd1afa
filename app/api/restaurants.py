"""Public restaurant endpoints: tables and availability"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.schemas.common import ApiResponse
from app.schemas.reservation import AvailabilityResponse
from app.schemas.table import TableResponse
from app.services.availability import AvailabilityResolver
from app.services.clock import parse_date, parse_time
from app.services.tables import TableRegistry
from app.api.deps import get_registry, get_resolver

router = APIRouter()


@router.get("/{restaurant_id}/tables", response_model=ApiResponse[List[TableResponse]])
async def list_tables(
    restaurant_id: UUID,
    registry: TableRegistry = Depends(get_registry),
):
    """Active tables of a restaurant"""
    await registry.get_restaurant(restaurant_id)
    tables = await registry.list_for_restaurant(restaurant_id, active_only=True)
    return {"success": True, "data": tables}


@router.get("/{restaurant_id}/tables/available", response_model=ApiResponse[List[TableResponse]])
async def available_tables(
    restaurant_id: UUID,
    date: str,
    time: str,
    guests: int = Query(..., ge=1),
    resolver: AvailabilityResolver = Depends(get_resolver),
):
    """Tables that fit the party and are free at the requested slot"""
    tables = await resolver.find_available_tables(
        restaurant_id, parse_date(date), parse_time(time), guests
    )
    return {"success": True, "data": tables}


@router.get("/{restaurant_id}/timeslots", response_model=ApiResponse[AvailabilityResponse])
async def timeslots(
    restaurant_id: UUID,
    date: str,
    guests: int = Query(..., ge=1),
    resolver: AvailabilityResolver = Depends(get_resolver),
):
    """Standard slots for a date, each flagged available if any table fits"""
    day = parse_date(date)
    slots = await resolver.list_open_slots(restaurant_id, day, guests)
    return {
        "success": True,
        "data": {
            "date": day,
            "party_size": guests,
            "slots": [
                {"time": slot.time.strftime("%H:%M"), "available": slot.available}
                for slot in slots
            ],
        },
    }
