"""Test configuration and fixtures"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, Optional, Set

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from uuid import uuid4

import app.models  # noqa: F401  register every table on Base.metadata
from app.main import app
from app.database import Base, get_db
from app.api import deps
from app.api.auth import create_access_token, get_password_hash
from app.integrations.payments import PaymentError, PaymentGateway
from app.models.reservation import Reservation, ReservationSource, ReservationStatus
from app.models.restaurant import Restaurant
from app.models.table import Table, TableStatus
from app.models.user import User, UserRole
from app.services.availability import AvailabilityResolver
from app.services.cache import TTLCache
from app.services.clock import FixedClock
from app.services.events import DomainEvent, EventPublisher
from app.services.feature_flags import FeatureFlagService
from app.services.lifecycle import ReservationLifecycle
from app.services.store import ReservationStore
from app.services.table_status import TableStatusEngine
from app.services.tables import TableRegistry
from app.services.waitlist import WaitlistManager


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Friday 2026-10-16, 18:00 restaurant-local
TEST_NOW = datetime(2026, 10, 16, 18, 0)


class RecordingPublisher(EventPublisher):
    """Keeps published events in memory"""

    def __init__(self):
        self.events: List[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [event.type.value for event in self.events]


class FakePaymentGateway(PaymentGateway):
    """In-memory gateway; ``refund_failures`` refunds fail before one succeeds.

    Intents count as paid once their reference is added to ``paid``.
    """

    def __init__(self, refund_failures: int = 0):
        self.refund_failures = refund_failures
        self.refund_attempts = 0
        self.refunds: List[str] = []
        self.charges: List[Dict] = []
        self.paid: Set[str] = set()
        self.voids: List[str] = []

    async def charge(self, amount: Decimal, currency: str, metadata: Optional[Dict[str, str]] = None) -> str:
        self.charges.append({"amount": amount, "currency": currency, "metadata": metadata})
        return f"pi_test_{len(self.charges)}"

    async def is_paid(self, payment_reference: str) -> bool:
        return payment_reference in self.paid

    async def void(self, payment_reference: str) -> None:
        self.voids.append(payment_reference)

    async def refund(self, payment_reference: str) -> str:
        self.refund_attempts += 1
        if self.refund_failures > 0:
            self.refund_failures -= 1
            raise PaymentError("card_declined")
        self.refunds.append(payment_reference)
        return f"re_test_{len(self.refunds)}"


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def clock():
    return FixedClock(TEST_NOW)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def payments():
    return FakePaymentGateway()


@pytest.fixture
def status_cache(clock):
    return TTLCache(30, clock=clock)


@pytest.fixture
def flag_cache(clock):
    return TTLCache(60, clock=clock)


@pytest.fixture
async def test_restaurant(test_db):
    """Create a test restaurant"""
    restaurant = Restaurant(
        id=uuid4(),
        name="Test Restaurant",
        timezone="America/New_York",
        holidays_json=[{"date": "2026-12-25", "closed": True}],
    )
    test_db.add(restaurant)
    await test_db.commit()
    return restaurant


@pytest.fixture
async def test_tables(test_db, test_restaurant):
    """Tables 1-3 with capacities 2, 4 and 6"""
    tables = [
        Table(
            id=uuid4(),
            restaurant_id=test_restaurant.id,
            number=number,
            capacity=capacity,
            zone="main",
            is_active=True,
            status=TableStatus.AVAILABLE.value,
        )
        for number, capacity in ((1, 2), (2, 4), (3, 6))
    ]
    for table in tables:
        test_db.add(table)
    await test_db.commit()
    return tables


@pytest.fixture
async def test_customer(test_db):
    """Create a guest account"""
    user = User(
        id=uuid4(),
        email="guest@example.com",
        hashed_password=get_password_hash("guestpass123"),
        full_name="Guest User",
        phone="+15550001111",
        role=UserRole.CUSTOMER,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()
    return user


@pytest.fixture
async def other_customer(test_db):
    user = User(
        id=uuid4(),
        email="other@example.com",
        hashed_password=get_password_hash("otherpass123"),
        full_name="Other Guest",
        role=UserRole.CUSTOMER,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()
    return user


@pytest.fixture
async def test_staff(test_db, test_restaurant):
    """Create a restaurant admin for the test restaurant"""
    user = User(
        id=uuid4(),
        restaurant_id=test_restaurant.id,
        email="staff@example.com",
        hashed_password=get_password_hash("staffpass123"),
        full_name="Staff User",
        role=UserRole.RESTAURANT_ADMIN,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()
    return user


@pytest.fixture
async def test_admin_user(test_db):
    """Create a super admin user"""
    user = User(
        id=uuid4(),
        email="admin@example.com",
        hashed_password=get_password_hash("adminpass123"),
        full_name="Admin User",
        role=UserRole.SUPER_ADMIN,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()
    return user


@pytest.fixture
def make_reservation(test_db, test_restaurant):
    """Factory inserting a reservation row directly"""
    async def _make(
        table: Table,
        day: date,
        at: time,
        status: str = ReservationStatus.CONFIRMED.value,
        user: Optional[User] = None,
        guest_count: int = 2,
        **fields,
    ) -> Reservation:
        reservation = Reservation(
            id=uuid4(),
            restaurant_id=test_restaurant.id,
            table_id=table.id,
            user_id=user.id if user else None,
            date=day,
            time=at,
            guest_count=guest_count,
            status=status,
            source=ReservationSource.ONLINE.value,
            qr_code=f"MF-{uuid4().hex[:12].upper()}",
            **fields,
        )
        test_db.add(reservation)
        await test_db.commit()
        return reservation

    return _make


@pytest.fixture
def registry(test_db):
    return TableRegistry(test_db)


@pytest.fixture
def store(test_db, registry):
    return ReservationStore(test_db, registry)


@pytest.fixture
def flags(test_db, flag_cache):
    return FeatureFlagService(test_db, flag_cache)


@pytest.fixture
def resolver(test_db, registry, store, flags):
    return AvailabilityResolver(test_db, registry, store, flags=flags)


@pytest.fixture
def status_engine(test_db, registry, store, clock, status_cache):
    return TableStatusEngine(test_db, registry, store, clock=clock, cache=status_cache)


@pytest.fixture
def lifecycle(test_db, registry, store, resolver, status_engine, publisher, payments, clock):
    return ReservationLifecycle(
        test_db,
        registry,
        store,
        resolver,
        status_engine=status_engine,
        publisher=publisher,
        payments=payments,
        clock=clock,
    )


@pytest.fixture
def waitlist(test_db, registry, publisher, status_engine):
    return WaitlistManager(test_db, registry, publisher=publisher, status_engine=status_engine)


@pytest.fixture
async def client(test_db, clock, publisher, payments, status_cache, flag_cache):
    """Create test client with overridden database and collaborators"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_event_publisher] = lambda: publisher
    app.dependency_overrides[deps.get_payment_gateway] = lambda: payments
    app.dependency_overrides[deps.get_table_status_cache] = lambda: status_cache
    app.dependency_overrides[deps.get_feature_flag_cache] = lambda: flag_cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    """Bearer headers for an arbitrary user, for one-off requests"""
    return auth_headers


@pytest.fixture
async def customer_client(client, test_customer):
    """Client authenticated as a guest"""
    client.headers.update(auth_headers(test_customer))
    return client


@pytest.fixture
async def staff_client(client, test_staff):
    """Client authenticated as restaurant staff"""
    client.headers.update(auth_headers(test_staff))
    return client


@pytest.fixture
async def admin_client(client, test_admin_user):
    """Client authenticated as super admin"""
    client.headers.update(auth_headers(test_admin_user))
    return client
