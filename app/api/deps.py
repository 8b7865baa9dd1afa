"""Service wiring for request handlers.

Long-lived collaborators (caches, event publisher, payment gateway, clock)
live on ``app.state``; everything else is built per request around the
request's database session.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.integrations.payments import PaymentGateway
from app.services.availability import AvailabilityResolver
from app.services.cache import TTLCache
from app.services.clock import Clock
from app.services.events import EventPublisher
from app.services.feature_flags import FeatureFlagService
from app.services.lifecycle import ReservationLifecycle
from app.services.store import ReservationStore
from app.services.table_status import TableStatusEngine
from app.services.tables import TableRegistry
from app.services.waitlist import WaitlistManager


def get_clock(request: Request) -> Optional[Clock]:
    """Pinned clock if one is installed; services otherwise use the restaurant's timezone"""
    return getattr(request.app.state, "clock", None)


def get_event_publisher(request: Request) -> Optional[EventPublisher]:
    return getattr(request.app.state, "event_publisher", None)


def get_payment_gateway(request: Request) -> Optional[PaymentGateway]:
    return getattr(request.app.state, "payment_gateway", None)


def get_table_status_cache(request: Request) -> Optional[TTLCache]:
    return getattr(request.app.state, "table_status_cache", None)


def get_feature_flag_cache(request: Request) -> TTLCache:
    return request.app.state.feature_flag_cache


def get_registry(db: AsyncSession = Depends(get_db)) -> TableRegistry:
    return TableRegistry(db)


def get_store(
    db: AsyncSession = Depends(get_db),
    registry: TableRegistry = Depends(get_registry),
) -> ReservationStore:
    return ReservationStore(db, registry)


def get_feature_flags(
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_feature_flag_cache),
) -> FeatureFlagService:
    return FeatureFlagService(db, cache)


def get_resolver(
    db: AsyncSession = Depends(get_db),
    registry: TableRegistry = Depends(get_registry),
    store: ReservationStore = Depends(get_store),
    flags: FeatureFlagService = Depends(get_feature_flags),
) -> AvailabilityResolver:
    return AvailabilityResolver(db, registry, store, flags=flags)


def get_status_engine(
    db: AsyncSession = Depends(get_db),
    registry: TableRegistry = Depends(get_registry),
    store: ReservationStore = Depends(get_store),
    clock: Optional[Clock] = Depends(get_clock),
    cache: Optional[TTLCache] = Depends(get_table_status_cache),
) -> TableStatusEngine:
    return TableStatusEngine(db, registry, store, clock=clock, cache=cache)


def get_lifecycle(
    db: AsyncSession = Depends(get_db),
    registry: TableRegistry = Depends(get_registry),
    store: ReservationStore = Depends(get_store),
    resolver: AvailabilityResolver = Depends(get_resolver),
    status_engine: TableStatusEngine = Depends(get_status_engine),
    publisher: Optional[EventPublisher] = Depends(get_event_publisher),
    payments: Optional[PaymentGateway] = Depends(get_payment_gateway),
    clock: Optional[Clock] = Depends(get_clock),
) -> ReservationLifecycle:
    return ReservationLifecycle(
        db,
        registry,
        store,
        resolver,
        status_engine=status_engine,
        publisher=publisher,
        payments=payments,
        clock=clock,
    )


def get_waitlist(
    db: AsyncSession = Depends(get_db),
    registry: TableRegistry = Depends(get_registry),
    publisher: Optional[EventPublisher] = Depends(get_event_publisher),
    status_engine: TableStatusEngine = Depends(get_status_engine),
) -> WaitlistManager:
    return WaitlistManager(db, registry, publisher=publisher, status_engine=status_engine)
