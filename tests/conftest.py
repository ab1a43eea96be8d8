"""
Pytest configuration and fixtures.
Every test gets its own SQLite database file, seeded with a small hotel.
"""

import os
import tempfile

# Point the module-level engine at a throwaway database BEFORE importing the package
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.gettempdir(), "hotel_reservations_test.db"
)
os.environ["ENVIRONMENT"] = "test"

from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from hotel_reservations.api.deps import get_booking_service, get_food_order_service
from hotel_reservations.core.locks import RoomLockManager
from hotel_reservations.core.security import create_access_token
from hotel_reservations.database import create_engine, create_session_factory, get_db, init_db
from hotel_reservations.models import FoodItem, Room, RoomCategory, User
from hotel_reservations.services.audit_service import AuditService
from hotel_reservations.services.booking_service import BookingService
from hotel_reservations.services.food_order_service import FoodOrderService
from hotel_reservations.utils.dates import today


def stay(start: int, nights: int = 1):
    """(check_in, check_out) starting ``start`` days from today."""
    check_in = today() + timedelta(days=start)
    return check_in, check_in + timedelta(days=nights)


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def engine(tmp_path):
    """Fresh database per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'hotel.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seed(session_factory):
    """Two categories, four rooms, a few users and a short menu."""
    async with session_factory() as session:
        standard = RoomCategory(
            name="Standard", base_price=Decimal("100.00"), max_occupancy=2, amenities=["wifi"]
        )
        deluxe = RoomCategory(
            name="Deluxe", base_price=Decimal("150.50"), max_occupancy=4, amenities=["wifi", "minibar"]
        )
        room_101 = Room(room_number="101", category=standard, floor=1)
        room_102 = Room(room_number="102", category=standard, floor=1)
        room_201 = Room(room_number="201", category=deluxe, floor=2)
        room_301 = Room(room_number="301", category=deluxe, floor=3, status="out_of_service")

        guest = User(email="guest@example.com", first_name="Ana", last_name="Lopez", role="guest")
        other_guest = User(email="other@example.com", first_name="Ben", last_name="Okafor", role="guest")
        inactive = User(
            email="gone@example.com", first_name="Old", last_name="Account", role="guest", is_active=False
        )
        receptionist = User(
            email="desk@example.com", first_name="Dana", last_name="Frontdesk", role="receptionist"
        )
        manager = User(email="manager@example.com", first_name="Max", last_name="Boss", role="manager")

        sandwich = FoodItem(name="Club sandwich", price=Decimal("12.50"))
        fries = FoodItem(name="Fries", price=Decimal("4.99"))
        lobster = FoodItem(name="Lobster", price=Decimal("45.00"), is_available=False)

        session.add_all(
            [
                standard,
                deluxe,
                room_101,
                room_102,
                room_201,
                room_301,
                guest,
                other_guest,
                inactive,
                receptionist,
                manager,
                sandwich,
                fries,
                lobster,
            ]
        )
        await session.commit()

    return SimpleNamespace(
        standard=standard,
        deluxe=deluxe,
        room_101=room_101,
        room_102=room_102,
        room_201=room_201,
        room_301=room_301,
        guest=guest,
        other_guest=other_guest,
        inactive=inactive,
        receptionist=receptionist,
        manager=manager,
        sandwich=sandwich,
        fries=fries,
        lobster=lobster,
    )


@pytest.fixture
def audit(session_factory):
    """Audit service writing to the test database. Not started by default."""
    return AuditService(session_factory=session_factory)


@pytest.fixture
def booking_service(session_factory, audit):
    return BookingService(
        session_factory=session_factory,
        lock_manager=RoomLockManager(),
        audit=audit,
        lock_timeout=1.0,
        max_attempts=3,
        retry_backoff=0,
    )


@pytest.fixture
def food_order_service(audit):
    return FoodOrderService(audit=audit)


@pytest.fixture
async def client(session_factory, booking_service, food_order_service):
    """HTTP client against an app wired to the test database and services."""
    from hotel_reservations.main import create_application

    app = create_application()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_booking_service] = lambda: booking_service
    app.dependency_overrides[get_food_order_service] = lambda: food_order_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
