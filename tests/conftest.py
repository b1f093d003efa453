"""
Test fixtures for the reservation service.

Provides:
- a file-backed SQLite database per test, with BEGIN IMMEDIATE transactions
  so concurrent writers serialize like they would on a row-locking store
- a frozen clock that tests advance to lapse payment windows
- a ReservationManager wired to both, also injected into the FastAPI app
- trip factories and identities with bearer tokens
"""
# Set environment variables BEFORE any driveshare imports
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["SENTRY_DSN"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, func
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import driveshare.models  # noqa: F401  registers tables on Base.metadata
from driveshare.db.base import Base
from driveshare.dependencies import get_reservation_manager
from driveshare.main import app
from driveshare.models.enums import ACTIVE_BOOKING_STATUSES, TripStatus
from driveshare.models.models import Booking, Payment, Trip
from driveshare.schemas.identity import Identity
from driveshare.services.identity import create_access_token
from driveshare.services.reservations import ReservationManager

START = datetime(2030, 1, 1, 12, 0, 0)
PAYMENT_WINDOW = timedelta(seconds=30)

DRIVER = Identity(id=1, role="driver", gender="Male", username="driver")
OTHER_DRIVER = Identity(id=2, role="driver", gender="Female", username="other-driver")
RIDER_A = Identity(id=101, role="rider", gender="Male", username="rider-a")
RIDER_B = Identity(id=102, role="rider", gender="Female", username="rider-b")
RIDER_C = Identity(id=103, role="rider", gender="Male", username="rider-c")


class FrozenClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


def bearer(identity: Identity) -> dict:
    return {"Authorization": f"Bearer {create_access_token(identity)}"}


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'driveshare.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        # hand transaction control to SQLAlchemy so "begin" below emits the BEGIN
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def manager(session_factory, clock):
    return ReservationManager(session_factory, payment_window=PAYMENT_WINDOW, clock=clock)


@pytest.fixture
def make_trip(session_factory):
    async def _make(
        capacity: int = 3,
        price: str = "100.00",
        owner: Identity = DRIVER,
        pink_mode: bool = False,
        departure: datetime = START + timedelta(days=1),
        source: str = "Pune",
        destination: str = "Mumbai",
    ) -> Trip:
        trip = Trip(
            owner_id=owner.id,
            source=source,
            destination=destination,
            departure_time=departure,
            capacity=capacity,
            available_seats=capacity,
            price_per_seat=Decimal(price),
            status=TripStatus.OPEN.value,
            pink_mode=pink_mode,
        )
        async with session_factory() as db:
            async with db.begin():
                db.add(trip)
        return trip

    return _make


@pytest.fixture
def load(session_factory):
    """Fetch a fresh copy of a row by primary key."""

    async def _load(model, pk):
        async with session_factory() as db:
            return await db.get(model, pk)

    return _load


@pytest.fixture
def held_seats(session_factory):
    """Seats held by pending/confirmed bookings of a trip."""

    async def _held(trip_id: int) -> int:
        async with session_factory() as db:
            stmt = sa_select(func.coalesce(func.sum(Booking.seats_booked), 0)).where(
                Booking.trip_id == trip_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            return (await db.execute(stmt)).scalar_one()

    return _held


@pytest.fixture
def assert_ledger_consistent(load, held_seats):
    async def _check(trip_id: int) -> Trip:
        trip = await load(Trip, trip_id)
        assert trip.available_seats + await held_seats(trip_id) == trip.capacity
        if trip.status in (TripStatus.OPEN.value, TripStatus.FULL.value):
            expected = TripStatus.FULL.value if trip.available_seats == 0 else TripStatus.OPEN.value
            assert trip.status == expected
        return trip

    return _check


@pytest.fixture
def payments_for(session_factory):
    async def _payments(booking_id: int):
        async with session_factory() as db:
            res = await db.execute(sa_select(Payment).where(Payment.booking_id == booking_id).order_by(Payment.id))
            return res.scalars().all()

    return _payments


@pytest.fixture
async def client(manager):
    app.dependency_overrides[get_reservation_manager] = lambda: manager
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}
